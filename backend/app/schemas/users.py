# backend/app/schemas/users.py
"""
Pydantic schemas for the user valuation endpoints.

Decimal values are serialized as strings by Pydantic v2 to preserve
precision. Timestamps are UTC ISO 8601.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class HistoryRange(str, Enum):
    """Lookback of the valuation time series."""
    MONTH = "month"
    ALL = "all"


# =============================================================================
# PROFILE
# =============================================================================

class UserProfileResponse(BaseModel):
    """Stored display data of a tracked user."""

    model_config = ConfigDict(from_attributes=True)

    id: str = Field(..., description="External identity (Steam64 id)")
    display_name: str
    avatar_ref: str = Field(..., description="Avatar hash")
    vanity_name: str | None = None
    updated_at: datetime | None = None


# =============================================================================
# VALUATION
# =============================================================================

class HoldingResponse(BaseModel):
    """One currently owned item priced at the latest snapshot."""

    model_config = ConfigDict(from_attributes=True)

    item_id: str
    name: str
    icon_ref: str
    count: int = Field(..., ge=0)
    price: Decimal | None = Field(
        None,
        description="Price at the snapshot, null if the item was not priced there"
    )
    value: Decimal = Field(..., description="price x count")
    min_price: Decimal = Field(..., description="Lowest price ever recorded (0 if none)")
    max_price: Decimal = Field(..., description="Highest price ever recorded (0 if none)")


class TimeSeriesPointResponse(BaseModel):
    """Total value of the current holdings at one snapshot, in one currency."""

    model_config = ConfigDict(from_attributes=True)

    snapshot_id: int
    taken_at: datetime
    currency: str = Field(..., min_length=3, max_length=3)
    value: Decimal


class UserValuationResponse(BaseModel):
    """Full valuation view of a user."""

    profile: UserProfileResponse
    base_currency: str
    snapshot_id: int | None = None
    taken_at: datetime | None = Field(None, description="Timestamp of the snapshot holdings are priced at")
    total_value: Decimal
    holdings: list[HoldingResponse]
    time_series: list[TimeSeriesPointResponse]
    served_from_cache: bool = Field(..., description="True when no external call was made")
    cache_reason: str = Field(..., description="Freshness decision, e.g. fresh_42_minutes_old")


# =============================================================================
# SYNC / REFRESH
# =============================================================================

class SyncResponse(BaseModel):
    """Result of an unconditional sync."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    snapshot_id: int
    taken_at: datetime
    item_count: int
    total_value: Decimal
    base_currency: str
    rates: dict[str, Decimal] = Field(default_factory=dict)


class InventoryItemResponse(BaseModel):
    """One item of a reconciled inventory."""

    model_config = ConfigDict(from_attributes=True)

    item_id: str
    name: str
    icon_ref: str
    count: int


class InventoryRefreshResponse(BaseModel):
    """Ownership after an inventory refresh (no prices, no snapshot)."""

    user_id: str
    item_count: int
    items: list[InventoryItemResponse]
