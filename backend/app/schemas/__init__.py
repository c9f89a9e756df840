# backend/app/schemas/__init__.py
"""
Pydantic schemas for API request/response validation.

- errors: Error response formats
- users: Profile, valuation, sync and inventory refresh responses

Usage:
    from app.schemas import ErrorDetail
    from app.schemas import UserValuationResponse, SyncResponse
"""

from app.schemas.errors import (
    ErrorDetail,
    ValidationErrorDetail,
)
from app.schemas.users import (
    HistoryRange,
    UserProfileResponse,
    HoldingResponse,
    TimeSeriesPointResponse,
    UserValuationResponse,
    SyncResponse,
    InventoryItemResponse,
    InventoryRefreshResponse,
)

__all__ = [
    # Errors
    "ErrorDetail",
    "ValidationErrorDetail",
    # Users
    "HistoryRange",
    "UserProfileResponse",
    "HoldingResponse",
    "TimeSeriesPointResponse",
    "UserValuationResponse",
    "SyncResponse",
    "InventoryItemResponse",
    "InventoryRefreshResponse",
]
