# backend/app/schemas/errors.py
"""
Pydantic schemas for error responses.

Every non-2xx response of the API uses one of these shapes. Used by the
global exception handlers in main.py and by the rate limit handler.
"""

from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """
    Standard error response format.

    Example:
        {"error": "PriceFetchIncompleteError",
         "message": "Couldn't fetch item prices: 2 of 9 lookups failed",
         "details": {"failed_item_ids": ["3604678661", "4281924190"], "total": 9}}
    """

    error: str = Field(
        ...,
        description="Exception class name (e.g., 'IdentityNotFoundError')"
    )
    message: str = Field(
        ...,
        description="Human-readable error message"
    )
    details: dict[str, Any] | None = Field(
        default=None,
        description="Additional error context (optional)"
    )


class ValidationErrorDetail(BaseModel):
    """Request validation failures (422)."""

    error: str = Field(default="ValidationError")
    message: str = Field(default="Request validation failed")
    details: list[dict[str, Any]] = Field(
        ...,
        description="One entry per invalid field"
    )
