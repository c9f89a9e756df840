# backend/app/services/valuation/types.py
"""
Internal data types for the Valuation Aggregator.

These dataclasses are NOT Pydantic schemas - those are defined in
app/schemas/users.py for API serialization.

Design Principles:
- Immutable value objects (frozen=True)
- Use Decimal for ALL money values (never float)
- Timestamps are timezone-aware UTC datetimes
- A missing price is None, not zero

Type Hierarchy:
    HoldingValuation  - One owned item priced at one snapshot
    TimeSeriesPoint   - Total value of a snapshot in one currency
    UserValuation     - Holdings + time series for a user
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


@dataclass(frozen=True)
class HoldingValuation:
    """
    Current holding of one item valued at a chosen snapshot.

    Attributes:
        item_id: Catalog identity
        name: Display name
        icon_ref: Icon hash
        count: Copies currently owned
        price: Price at the chosen snapshot (None when not priced there)
        value: price x count (0 when price is None)
        min_price: Lowest price ever recorded for the item (0 if never priced)
        max_price: Highest price ever recorded for the item (0 if never priced)

    Note:
        min_price / max_price span ALL snapshots of ALL users, not just the
        chosen snapshot: the market price of an item is global.
    """

    item_id: str
    name: str
    icon_ref: str
    count: int
    price: Decimal | None
    value: Decimal
    min_price: Decimal
    max_price: Decimal


@dataclass(frozen=True)
class TimeSeriesPoint:
    """
    Total value of a user's current holdings at one snapshot, in one currency.
    """

    snapshot_id: int
    taken_at: datetime
    currency: str
    value: Decimal


@dataclass
class UserValuation:
    """
    Complete valuation view of a user.

    Attributes:
        user_id: External identity
        base_currency: Currency of prices and total_value
        snapshot_id: Snapshot the holdings are priced at (None if never synced)
        taken_at: Timestamp of that snapshot
        holdings: Current holdings, highest value first
        time_series: Points ordered by (taken_at, snapshot id, currency)
        total_value: Sum of holding values in the base currency
    """

    user_id: str
    base_currency: str
    snapshot_id: int | None
    taken_at: datetime | None
    holdings: list[HoldingValuation] = field(default_factory=list)
    time_series: list[TimeSeriesPoint] = field(default_factory=list)
    total_value: Decimal = Decimal("0")

    @property
    def item_count(self) -> int:
        return sum(holding.count for holding in self.holdings)
