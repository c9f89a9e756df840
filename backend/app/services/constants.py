# backend/app/services/constants.py
"""
Centralized constants for the Inventory Value Tracker services.

Tunable values that operators may want to change per deployment live in
app/config.py (environment variables). This module holds the fixed business
constants and the rate limits applied to HTTP endpoints.

Usage:
    from app.services.constants import (
        ZERO,
        RATE_LIMIT_SYNC,
    )
"""

from decimal import Decimal


# =============================================================================
# SYNC DEFAULTS
# =============================================================================

# Minutes after which a snapshot is considered stale and a sync is triggered
# 180 = at most one external refresh every three hours per user
DEFAULT_FRESHNESS_WINDOW_MINUTES: int = 180


# =============================================================================
# DECIMAL CONSTANTS
# =============================================================================

# Type-safe zero for Decimal comparisons
ZERO: Decimal = Decimal("0")


# =============================================================================
# RATE LIMITING CONSTANTS
# =============================================================================
# Format follows slowapi/limits syntax: "100/minute", "10/hour", etc.

# Default rate limit for read endpoints (GET requests)
# A cache miss on a valuation view triggers a full sync, so keep this moderate
RATE_LIMIT_DEFAULT: str = "60/minute"

# Rate limit for endpoints that always hit external services
# (forced sync, profile refresh, inventory refresh). The market endpoint
# rate-limits aggressively per IP, so be conservative.
RATE_LIMIT_SYNC: str = "5/minute"

# Rate limit for health check endpoints
# Higher limit for monitoring tools that poll frequently
RATE_LIMIT_HEALTH: str = "300/minute"
