# backend/app/utils/__init__.py
"""
Utility modules for the Inventory Value Tracker.

This package contains cross-cutting utilities used throughout the application:
- logging: Logging configuration with correlation ID support
- context: Correlation ID storage and thread hand-off
- date_utils: UTC helpers (SQLite returns naive datetimes)
- money: Price string parsing and currency rounding
- sql: Dialect-aware upsert statements

Usage:
    from app.utils import setup_logging
    from app.utils import get_correlation_id, set_correlation_id
    from app.utils import upsert_statement
    from app.utils.money import parse_price
"""

from app.utils.context import (
    get_correlation_id,
    set_correlation_id,
    clear_correlation_id,
    bind_context,
)
from app.utils.logging import setup_logging
from app.utils.sql import upsert_statement

__all__ = [
    # Logging
    "setup_logging",
    # Context
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    "bind_context",
    # SQL
    "upsert_statement",
]
