# backend/app/services/valuation/aggregator.py
"""
Valuation Aggregator: read-only queries over committed snapshot history.

Two query shapes:
- Holdings: current Ownership x Item x one snapshot's PricePoints, plus the
  full-history min/max price of every owned item.
- Time series: for every snapshot in range, the total of
  (current count x that snapshot's price) in the base currency and in every
  currency that snapshot recorded a rate for.

Counts always come from the CURRENT Ownership; prices and rates come from
the snapshot. Only the latter are versioned.

Sums are computed in Python on Decimal values rather than with SQL SUM():
SQLite aggregates Numeric columns as floats.
"""

import logging
from collections import defaultdict
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from app.models import Item, Ownership, Snapshot, PricePoint, CurrencyRate
from app.services.constants import ZERO
from app.services.valuation.types import HoldingValuation, TimeSeriesPoint, UserValuation
from app.utils.date_utils import ensure_utc
from app.utils.money import quantize_currency

logger = logging.getLogger(__name__)


class ValuationAggregator:
    """
    Builds holdings and time series views for a user.

    Usage:
        aggregator = ValuationAggregator(base_currency="USD")
        valuation = aggregator.get_valuation(db, user_id, since=month_ago)
    """

    def __init__(self, base_currency: str = "USD") -> None:
        self.base_currency = base_currency.upper()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def get_valuation(
            self,
            db: Session,
            user_id: str,
            since: datetime | None = None,
    ) -> UserValuation:
        """
        Holdings at the latest snapshot plus the time series since `since`.

        Args:
            db: Database session
            user_id: External identity
            since: Inclusive lower bound of the time series (None = all)

        Returns:
            UserValuation (empty holdings/series for unknown users)
        """
        latest = self._latest_snapshot(db, user_id)
        holdings = self.get_holdings(db, user_id, snapshot_id=latest.id if latest else None)
        time_series = self.get_time_series(db, user_id, since=since)

        total_value = quantize_currency(sum((h.value for h in holdings), ZERO))

        return UserValuation(
            user_id=user_id,
            base_currency=self.base_currency,
            snapshot_id=latest.id if latest else None,
            taken_at=ensure_utc(latest.taken_at) if latest else None,
            holdings=holdings,
            time_series=time_series,
            total_value=total_value,
        )

    def get_holdings(
            self,
            db: Session,
            user_id: str,
            snapshot_id: int | None = None,
    ) -> list[HoldingValuation]:
        """
        Current holdings priced at a snapshot.

        Args:
            db: Database session
            user_id: External identity
            snapshot_id: Snapshot to price at (default: latest of the user)

        Returns:
            Holdings sorted by value descending, then name
        """
        if snapshot_id is None:
            latest = self._latest_snapshot(db, user_id)
            snapshot_id = latest.id if latest else None

        owned = db.execute(
            select(Item.id, Item.name, Item.icon_ref, Ownership.count)
            .join(Ownership, Ownership.item_id == Item.id)
            .where(Ownership.user_id == user_id)
        ).all()
        if not owned:
            return []

        item_ids = [row.id for row in owned]
        prices = self._snapshot_prices(db, snapshot_id, item_ids)
        extremes = self._price_extremes(db, item_ids)

        holdings = []
        for row in owned:
            price = prices.get(row.id)
            low, high = extremes.get(row.id, (ZERO, ZERO))
            holdings.append(HoldingValuation(
                item_id=row.id,
                name=row.name,
                icon_ref=row.icon_ref,
                count=row.count,
                price=price,
                value=price * row.count if price is not None else ZERO,
                min_price=low,
                max_price=high,
            ))

        holdings.sort(key=lambda h: (-h.value, h.name))
        return holdings

    def get_time_series(
            self,
            db: Session,
            user_id: str,
            since: datetime | None = None,
    ) -> list[TimeSeriesPoint]:
        """
        Total value per snapshot, in the base currency and every recorded rate.

        A snapshot without a rate for some code has no point for that code.
        Snapshots whose prices cover none of the current holdings total 0.

        Returns:
            Points ordered by taken_at, snapshot id, then base currency first
            and remaining codes alphabetically
        """
        snapshot_query = select(Snapshot.id, Snapshot.taken_at).where(Snapshot.user_id == user_id)
        if since is not None:
            snapshot_query = snapshot_query.where(Snapshot.taken_at >= ensure_utc(since))
        snapshots = db.execute(
            snapshot_query.order_by(Snapshot.taken_at, Snapshot.id)
        ).all()
        if not snapshots:
            return []

        snapshot_ids = [row.id for row in snapshots]
        base_totals = self._base_totals(db, user_id, snapshot_ids)
        rates = self._snapshot_rates(db, snapshot_ids)

        points: list[TimeSeriesPoint] = []
        for row in snapshots:
            taken_at = ensure_utc(row.taken_at)
            base_total = base_totals.get(row.id, ZERO)
            points.append(TimeSeriesPoint(
                snapshot_id=row.id,
                taken_at=taken_at,
                currency=self.base_currency,
                value=quantize_currency(base_total),
            ))
            for code, rate in sorted(rates.get(row.id, {}).items()):
                if code == self.base_currency:
                    continue
                points.append(TimeSeriesPoint(
                    snapshot_id=row.id,
                    taken_at=taken_at,
                    currency=code,
                    value=quantize_currency(base_total * rate),
                ))

        logger.debug(f"Built time series for user {user_id}: {len(snapshots)} snapshots, {len(points)} points")
        return points

    # =========================================================================
    # QUERIES
    # =========================================================================

    @staticmethod
    def _latest_snapshot(db: Session, user_id: str):
        return db.execute(
            select(Snapshot.id, Snapshot.taken_at)
            .where(Snapshot.user_id == user_id)
            .order_by(Snapshot.taken_at.desc(), Snapshot.id.desc())
            .limit(1)
        ).first()

    @staticmethod
    def _snapshot_prices(
            db: Session,
            snapshot_id: int | None,
            item_ids: list[str],
    ) -> dict[str, Decimal]:
        if snapshot_id is None:
            return {}
        rows = db.execute(
            select(PricePoint.item_id, PricePoint.price)
            .where(PricePoint.snapshot_id == snapshot_id, PricePoint.item_id.in_(item_ids))
        ).all()
        return {row.item_id: row.price for row in rows}

    @staticmethod
    def _price_extremes(db: Session, item_ids: list[str]) -> dict[str, tuple[Decimal, Decimal]]:
        rows = db.execute(
            select(
                PricePoint.item_id,
                func.coalesce(func.min(PricePoint.price), 0).label("min_price"),
                func.coalesce(func.max(PricePoint.price), 0).label("max_price"),
            )
            .where(PricePoint.item_id.in_(item_ids))
            .group_by(PricePoint.item_id)
        ).all()
        return {
            row.item_id: (Decimal(str(row.min_price)), Decimal(str(row.max_price)))
            for row in rows
        }

    @staticmethod
    def _base_totals(
            db: Session,
            user_id: str,
            snapshot_ids: list[int],
    ) -> dict[int, Decimal]:
        rows = db.execute(
            select(PricePoint.snapshot_id, PricePoint.price, Ownership.count)
            .join(Ownership, Ownership.item_id == PricePoint.item_id)
            .where(
                Ownership.user_id == user_id,
                PricePoint.snapshot_id.in_(snapshot_ids),
            )
        ).all()

        totals: dict[int, Decimal] = defaultdict(lambda: ZERO)
        for row in rows:
            totals[row.snapshot_id] += row.price * row.count
        return totals

    @staticmethod
    def _snapshot_rates(db: Session, snapshot_ids: list[int]) -> dict[int, dict[str, Decimal]]:
        rows = db.execute(
            select(CurrencyRate.snapshot_id, CurrencyRate.code, CurrencyRate.rate)
            .where(CurrencyRate.snapshot_id.in_(snapshot_ids))
        ).all()

        rates: dict[int, dict[str, Decimal]] = defaultdict(dict)
        for row in rows:
            rates[row.snapshot_id][row.code] = row.rate
        return rates
