# backend/app/middleware/rate_limit.py
"""
Rate limiting for the HTTP API (slowapi).

Protects the Steam market endpoint more than this service: every stale
valuation or manual sync fans out one market request per tracked item, and
Steam throttles per source IP. Limits live in app/services/constants.py:

    RATE_LIMIT_DEFAULT  read endpoints (may trigger a sync on cache miss)
    RATE_LIMIT_SYNC     endpoints that always call Steam
    RATE_LIMIT_HEALTH   health probes

Key by: client IP (X-Forwarded-For / X-Real-IP only from trusted proxies)
Storage: in-memory (single instance)

Usage:
    @router.post("/{name}/sync")
    @limiter.limit(RATE_LIMIT_SYNC)
    def sync_user(request: Request, ...):
        ...
"""

import logging

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.config import settings
from app.schemas.errors import ErrorDetail
from app.services.constants import (
    RATE_LIMIT_DEFAULT,
    RATE_LIMIT_SYNC,
    RATE_LIMIT_HEALTH,
)

logger = logging.getLogger(__name__)

# Seconds suggested to clients in Retry-After
DEFAULT_RETRY_AFTER = 60


def _get_client_ip(request: Request) -> str:
    """
    Client IP used as the rate limit key.

    Forwarded headers are only honoured when the direct peer is a trusted
    proxy (or TRUST_PROXY_HEADERS is set); otherwise clients could pick
    their own key.
    """
    peer_ip = get_remote_address(request)
    if settings.trust_proxy_headers or peer_ip in settings.trusted_proxy_ips:
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip
    return peer_ip


# =============================================================================
# LIMITER INSTANCE
# =============================================================================

limiter = Limiter(
    key_func=_get_client_ip,
    default_limits=[RATE_LIMIT_DEFAULT],
    enabled=not settings.is_test,
)


# =============================================================================
# RATE LIMIT EXCEEDED HANDLER
# =============================================================================

async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 in the standard ErrorDetail shape with a Retry-After header."""
    limit_info = str(exc.detail) if exc.detail else "Rate limit exceeded"
    logger.warning(f"Rate limit exceeded for {_get_client_ip(request)}: {limit_info}")

    return JSONResponse(
        status_code=429,
        content=ErrorDetail(
            error="RateLimitError",
            message=f"Too many requests. {limit_info}",
            details={"retry_after": DEFAULT_RETRY_AFTER},
        ).model_dump(),
        headers={"Retry-After": str(DEFAULT_RETRY_AFTER)},
    )


__all__ = [
    "limiter",
    "rate_limit_exceeded_handler",
    "SlowAPIMiddleware",
    "RATE_LIMIT_DEFAULT",
    "RATE_LIMIT_SYNC",
    "RATE_LIMIT_HEALTH",
]
