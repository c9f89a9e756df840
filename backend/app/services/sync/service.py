# backend/app/services/sync/service.py
"""
Inventory Sync Service - orchestrates fetching, pricing and persisting.

This service coordinates:
1. Name resolution (stored alias for the cache check, provider lookup
   before every sync)
2. Cache freshness evaluation (StalenessPolicy)
3. Profile + raw inventory fetch
4. Normalization and all-or-nothing concurrent pricing
5. Currency rate fetch for the tracked currencies
6. Atomic persistence through the SnapshotStore

Design Principles:
- Session is passed as parameter (not stored)
- Fresh users are served without any external call
- Every failure is terminal for the attempt; nothing is retried here and
  nothing partial is written
- Providers are injected for testability

Pipeline (stale user):
    resolve -> fetch_profile -> fetch_raw_inventory -> normalize
    -> fetch_prices (gate) -> fetch_currency_rates -> record_sync
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from app.models import Snapshot, User
from app.services.constants import (
    DEFAULT_FRESHNESS_WINDOW_MINUTES,
    ZERO,
)
from app.services.exceptions import (
    CurrencyRateUnavailableError,
    EmptyInventoryError,
    IdentityNotFoundError,
    ProfileNotFoundError,
)
from app.services.gateway.base import (
    CurrencyRateProvider,
    InventoryProvider,
    ProfileInfo,
)
from app.services.inventory import (
    ConcurrentPriceFetcher,
    NormalizedItem,
    normalize_inventory,
)
from app.services.snapshot_store import SnapshotStore
from app.services.sync.staleness import StalenessPolicy
from app.services.valuation import ValuationAggregator, UserValuation
from app.utils.date_utils import ensure_utc, utc_now
from app.utils.money import quantize_currency

logger = logging.getLogger(__name__)


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class SyncResult:
    """
    Summary of one successful sync.

    Attributes:
        user_id: External identity
        snapshot_id: Newly committed snapshot
        taken_at: Snapshot timestamp (UTC)
        item_count: Distinct items priced
        total_value: Sum of price x count in the base currency
        base_currency: Currency of total_value
        rates: Tracked currency rates recorded with the snapshot
    """

    user_id: str
    snapshot_id: int
    taken_at: datetime
    item_count: int
    total_value: Decimal
    base_currency: str
    rates: dict[str, Decimal] = field(default_factory=dict)


@dataclass
class InventoryRefreshResult:
    """Items a user's Ownership was reconciled to."""

    user_id: str
    items: list[NormalizedItem] = field(default_factory=list)

    @property
    def item_count(self) -> int:
        return sum(item.count for item in self.items)


@dataclass
class ValuationView:
    """
    Valuation of a user together with the profile and cache decision.

    Attributes:
        user: Stored user row (display fields)
        valuation: Holdings + time series
        served_from_cache: True when no external call was made
        cache_reason: StalenessPolicy reason string
    """

    user: User
    valuation: UserValuation
    served_from_cache: bool
    cache_reason: str


# =============================================================================
# SERVICE
# =============================================================================

class InventorySyncService:
    """
    Keeps a user's snapshot history current and serves valuations.

    Example:
        service = InventorySyncService(
            inventory_provider=SteamGateway(api_key="..."),
            currency_provider=CurrencyApiProvider(),
        )
        view = service.get_valuation(db, "gaben", since=month_ago)
    """

    def __init__(
            self,
            inventory_provider: InventoryProvider,
            currency_provider: CurrencyRateProvider,
            store: SnapshotStore | None = None,
            aggregator: ValuationAggregator | None = None,
            staleness_policy: StalenessPolicy | None = None,
            price_fetcher: ConcurrentPriceFetcher | None = None,
            base_currency: str = "USD",
            tracked_currencies: list[str] | None = None,
            category_marker: str = "Case",
    ) -> None:
        """
        Initialize the service with its collaborators.

        Args:
            inventory_provider: Identity / profile / inventory / price source
            currency_provider: Currency rate source
            store: Snapshot store (default: new SnapshotStore)
            aggregator: Valuation aggregator (default: for base_currency)
            staleness_policy: Cache policy (default: 180 minute window)
            price_fetcher: Price fan-out (default: over inventory_provider)
            base_currency: Currency prices are quoted in
            tracked_currencies: Codes recorded with every snapshot
            category_marker: Name substring of priceable items
        """
        self._inventory = inventory_provider
        self._currency = currency_provider
        self._store = store or SnapshotStore()
        self._base_currency = base_currency.upper()
        self._aggregator = aggregator or ValuationAggregator(self._base_currency)
        self._policy = staleness_policy or StalenessPolicy(
            timedelta(minutes=DEFAULT_FRESHNESS_WINDOW_MINUTES)
        )
        self._price_fetcher = price_fetcher or ConcurrentPriceFetcher(inventory_provider)
        self._tracked_currencies = [
            code.upper()
            for code in (tracked_currencies if tracked_currencies is not None else ["EUR", "PLN"])
            if code.upper() != self._base_currency
        ]
        self._category_marker = category_marker

    @property
    def store(self) -> SnapshotStore:
        return self._store

    # =========================================================================
    # CACHE
    # =========================================================================

    def get_cached_snapshot(
            self,
            db: Session,
            user_id: str,
            now: datetime | None = None,
    ) -> Snapshot | None:
        """
        Latest snapshot of a user if it is still inside the freshness window.

        Returns:
            The fresh Snapshot, or None when the user is stale or never synced
        """
        latest = self._store.get_latest_snapshot(db, user_id)
        is_stale, reason = self._policy.evaluate(
            latest.taken_at if latest else None,
            now=now,
        )
        logger.debug(f"Cache check for user {user_id}: {reason}")
        return None if is_stale else latest

    # =========================================================================
    # VALUATION
    # =========================================================================

    def get_valuation(
            self,
            db: Session,
            name: str,
            since: datetime | None = None,
            force_refresh: bool = False,
            now: datetime | None = None,
    ) -> ValuationView:
        """
        Serve a user's valuation, syncing first when the cache is stale.

        Args:
            db: Database session
            name: Vanity name or external id
            since: Lower bound of the time series (None = full history)
            force_refresh: Sync even when the cache is fresh
            now: Reference time (default: current UTC time)

        Returns:
            ValuationView

        Raises:
            IdentityNotFoundError: Name does not resolve
            EmptyInventoryError: Stale user without priceable items
            PriceFetchIncompleteError: A price lookup failed during the sync
            PersistenceError: Snapshot could not be written
            ExternalServiceError: Provider failure during the sync
        """
        now = ensure_utc(now or utc_now())

        user = self._find_local_user(db, name)
        if user is not None:
            latest = self._store.get_latest_snapshot(db, user.id)
            is_stale, reason = self._policy.evaluate(
                latest.taken_at if latest else None,
                now=now,
                force=force_refresh,
            )
        else:
            is_stale, reason = True, "never_synced"

        if is_stale:
            logger.info(f"Valuation for '{name}' needs a sync ({reason})")
            result = self.sync_user(db, name, now=now)
            user = self._store.get_user(db, result.user_id)
        else:
            logger.info(f"Serving cached valuation for '{name}' ({reason})")

        valuation = self._aggregator.get_valuation(db, user.id, since=since)
        return ValuationView(
            user=user,
            valuation=valuation,
            served_from_cache=not is_stale,
            cache_reason=reason,
        )

    # =========================================================================
    # SYNC
    # =========================================================================

    def sync_user(
            self,
            db: Session,
            name: str,
            now: datetime | None = None,
    ) -> SyncResult:
        """
        Run the full sync pipeline for a user, unconditionally.

        Either a new Snapshot with one PricePoint per normalized item and one
        CurrencyRate per tracked currency is committed, or nothing is written.

        Raises:
            IdentityNotFoundError: Name does not resolve
            ProfileNotFoundError: No profile for the identity
            EmptyInventoryError: No priceable items
            PriceFetchIncompleteError: At least one price lookup failed
            CurrencyRateUnavailableError: A tracked currency has no rate
            PersistenceError: Commit failed (rolled back)
            ExternalServiceError: Other provider failures
        """
        taken_at = ensure_utc(now or utc_now())
        logger.info(f"Starting sync for '{name}'")

        profile = self._fetch_profile(db, name)
        user_id = profile.external_id

        items = self._fetch_items(user_id)
        priced_items = self._price_fetcher.fetch_prices(items, user_id=user_id)
        rates = self._fetch_tracked_rates()

        snapshot = self._store.record_sync(
            db,
            profile=profile,
            priced_items=priced_items,
            rates=rates,
            taken_at=taken_at,
        )

        total_value = quantize_currency(sum((item.value for item in priced_items), ZERO))
        logger.info(
            f"Sync completed for user {user_id}: snapshot {snapshot.id}, "
            f"{len(priced_items)} items, total {total_value} {self._base_currency}"
        )

        return SyncResult(
            user_id=user_id,
            snapshot_id=snapshot.id,
            taken_at=taken_at,
            item_count=len(priced_items),
            total_value=total_value,
            base_currency=self._base_currency,
            rates=rates,
        )

    def refresh_profile(self, db: Session, name: str) -> User:
        """
        Re-fetch and store a user's display fields. No snapshot is recorded.

        Raises:
            IdentityNotFoundError: Name does not resolve
            ProfileNotFoundError: No profile for the identity
            PersistenceError: Write failed
        """
        profile = self._fetch_profile(db, name)
        user = self._store.record_profile(db, profile)
        logger.info(f"Refreshed profile of user {user.id} ('{user.display_name}')")
        return user

    def refresh_inventory(self, db: Session, name: str) -> InventoryRefreshResult:
        """
        Re-fetch the inventory and reconcile Ownership. No prices, no snapshot.

        The name is always resolved through the provider. Users not stored
        yet get their profile fetched and stored first so the ownership
        rows have an owner.

        Returns:
            InventoryRefreshResult with the items Ownership now matches

        Raises:
            IdentityNotFoundError: Name does not resolve
            EmptyInventoryError: No priceable items
            PersistenceError: Write failed
        """
        external_id = self._resolve_external_id(name)
        user = self._store.get_user(db, external_id)
        if user is not None:
            profile = ProfileInfo(
                external_id=user.id,
                display_name=user.display_name,
                avatar_ref=user.avatar_ref,
                vanity_name=name if name != external_id else None,
            )
        else:
            profile = self._fetch_profile(db, name)

        items = self._fetch_items(profile.external_id)
        self._store.record_inventory(db, profile, items)
        return InventoryRefreshResult(user_id=profile.external_id, items=items)

    # =========================================================================
    # PIPELINE STEPS
    # =========================================================================

    def _find_local_user(self, db: Session, name: str) -> User | None:
        """Look a name up as a stored external id, then as a vanity alias."""
        return self._store.get_user(db, name) or self._store.get_user_by_vanity_name(db, name)

    def _resolve_external_id(self, name: str) -> str:
        """Ask the provider who owns a name; stored aliases may be outdated."""
        identity = self._inventory.resolve_identity(name)
        if not identity.found or not identity.external_id:
            raise IdentityNotFoundError(name)
        return identity.external_id

    def _fetch_profile(self, db: Session, name: str) -> ProfileInfo:
        external_id = self._resolve_external_id(name)
        profile = self._inventory.fetch_profile(external_id)
        if profile is None:
            raise ProfileNotFoundError(external_id)

        # Remember the name the user was looked up by
        if name != external_id:
            profile = replace(profile, vanity_name=name)
        return profile

    def _fetch_items(self, user_id: str) -> list[NormalizedItem]:
        raw = self._inventory.fetch_raw_inventory(user_id)
        items = normalize_inventory(raw, self._category_marker)
        if not items:
            raise EmptyInventoryError(user_id, self._category_marker)
        return items

    def _fetch_tracked_rates(self) -> dict[str, Decimal]:
        if not self._tracked_currencies:
            return {}

        available = self._currency.fetch_currency_rates(self._base_currency)
        missing = [code for code in self._tracked_currencies if code not in available]
        if missing:
            raise CurrencyRateUnavailableError(self._currency.name, missing)

        return {code: available[code] for code in self._tracked_currencies}
