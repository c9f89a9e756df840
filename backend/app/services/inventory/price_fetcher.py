# backend/app/services/inventory/price_fetcher.py
"""
Concurrent spot price lookup with an all-or-nothing gate.

Every item gets its own lookup on a bounded thread pool. All lookups are
allowed to settle (no fail-fast), then the batch is checked: a single failure
fails the whole batch and nothing is returned. Callers therefore never see a
partially priced inventory.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait, ALL_COMPLETED, Future
from dataclasses import dataclass
from decimal import Decimal

from app.services.exceptions import PriceFetchIncompleteError
from app.services.gateway.base import InventoryProvider
from app.services.inventory.normalizer import NormalizedItem
from app.utils.context import bind_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricedItem:
    """A normalized item with its spot price in the base currency."""

    item_id: str
    name: str
    icon_ref: str
    count: int
    price: Decimal

    @property
    def value(self) -> Decimal:
        return self.price * self.count

    @classmethod
    def from_item(cls, item: NormalizedItem, price: Decimal) -> "PricedItem":
        return cls(
            item_id=item.item_id,
            name=item.name,
            icon_ref=item.icon_ref,
            count=item.count,
            price=price,
        )


class ConcurrentPriceFetcher:
    """
    Fan out spot price lookups and join them before returning.

    Attributes:
        provider: Source of spot prices
        max_workers: Upper bound on simultaneous lookups
    """

    DEFAULT_MAX_WORKERS = 8

    def __init__(
            self,
            provider: InventoryProvider,
            max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self._provider = provider
        self._max_workers = max(1, max_workers)

    def fetch_prices(
            self,
            items: list[NormalizedItem],
            user_id: str | None = None,
    ) -> list[PricedItem]:
        """
        Price every item concurrently.

        Args:
            items: Normalized items (names are the lookup keys)
            user_id: Owner, only used to enrich the error

        Returns:
            New PricedItem list in the same order as items

        Raises:
            PriceFetchIncompleteError: At least one lookup failed
        """
        if not items:
            return []

        workers = min(self._max_workers, len(items))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="price") as executor:
            futures: list[Future] = [
                executor.submit(bind_context(self._provider.fetch_spot_price), item.name)
                for item in items
            ]
            wait(futures, return_when=ALL_COMPLETED)

        failed: list[str] = []
        for item, future in zip(items, futures):
            error = future.exception()
            if error is not None:
                logger.warning(f"Price lookup failed for '{item.name}' ({item.item_id}): {error}")
                failed.append(item.item_id)

        if failed:
            raise PriceFetchIncompleteError(failed, total=len(items), user_id=user_id)

        logger.debug(f"Fetched {len(items)} prices with {workers} workers")
        return [
            PricedItem.from_item(item, future.result())
            for item, future in zip(items, futures)
        ]
