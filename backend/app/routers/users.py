# backend/app/routers/users.py
"""
User valuation endpoints.

Endpoints:
    GET    /users/{name}            - Valuation view (syncs first when stale)
    POST   /users/{name}/sync       - Unconditional sync, new snapshot
    POST   /users/{name}/profile    - Refresh display fields only
    POST   /users/{name}/inventory  - Reconcile ownership only (no snapshot)

`name` is a vanity name or a Steam64 id. Errors are raised as service
exceptions and mapped to HTTP responses by the global handlers in main.py.
"""

import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.dependencies import get_inventory_sync_service
from app.middleware.rate_limit import limiter, RATE_LIMIT_DEFAULT, RATE_LIMIT_SYNC
from app.schemas.errors import ErrorDetail
from app.schemas.users import (
    HistoryRange,
    HoldingResponse,
    InventoryItemResponse,
    InventoryRefreshResponse,
    SyncResponse,
    TimeSeriesPointResponse,
    UserProfileResponse,
    UserValuationResponse,
)
from app.services.sync import InventorySyncService
from app.utils.date_utils import history_lower_bound, utc_now

logger = logging.getLogger(__name__)


# =============================================================================
# ROUTER SETUP
# =============================================================================

router = APIRouter(
    prefix="/users",
    tags=["Users"],
)

_NOT_FOUND = {404: {"description": "Profile not found", "model": ErrorDetail}}
_SYNC_ERRORS = {
    400: {"description": "Inventory has no tracked items", "model": ErrorDetail},
    429: {"description": "Price lookups were rate limited", "model": ErrorDetail},
    503: {"description": "External service unavailable", "model": ErrorDetail},
}


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "/{name}",
    response_model=UserValuationResponse,
    summary="Get user valuation",
    response_description="Profile, holdings and value time series",
    responses={**_NOT_FOUND, **_SYNC_ERRORS},
)
@limiter.limit(RATE_LIMIT_DEFAULT)
def get_user_valuation(
        request: Request,  # Required for rate limiting
        name: str,
        history: HistoryRange = Query(
            HistoryRange.MONTH,
            alias="range",
            description="Time series lookback: 'month' or 'all'",
        ),
        force_refresh: bool = Query(False, description="Sync even if cached data is fresh"),
        db: Session = Depends(get_db),
        service: InventorySyncService = Depends(get_inventory_sync_service),
) -> UserValuationResponse:
    """
    Get the valuation view of a user.

    Cached data younger than the freshness window is served without calling
    Steam. Otherwise a full sync runs first: inventory, prices for every
    tracked item, currency rates, and a new snapshot.
    """
    now = utc_now()
    days = settings.default_history_days if history == HistoryRange.MONTH else None
    since = history_lower_bound(now, days)

    view = service.get_valuation(
        db,
        name,
        since=since,
        force_refresh=force_refresh,
        now=now,
    )
    valuation = view.valuation

    return UserValuationResponse(
        profile=UserProfileResponse.model_validate(view.user),
        base_currency=valuation.base_currency,
        snapshot_id=valuation.snapshot_id,
        taken_at=valuation.taken_at,
        total_value=valuation.total_value,
        holdings=[HoldingResponse.model_validate(h) for h in valuation.holdings],
        time_series=[TimeSeriesPointResponse.model_validate(p) for p in valuation.time_series],
        served_from_cache=view.served_from_cache,
        cache_reason=view.cache_reason,
    )


@router.post(
    "/{name}/sync",
    response_model=SyncResponse,
    summary="Sync user inventory",
    response_description="Summary of the new snapshot",
    responses={**_NOT_FOUND, **_SYNC_ERRORS},
)
@limiter.limit(RATE_LIMIT_SYNC)
def sync_user(
        request: Request,  # Required for rate limiting
        name: str,
        db: Session = Depends(get_db),
        service: InventorySyncService = Depends(get_inventory_sync_service),
) -> SyncResponse:
    """
    Record a new snapshot regardless of cache freshness.

    All prices must be fetched successfully; otherwise nothing is stored and
    **429** is returned.
    """
    logger.info(f"Manual sync requested for '{name}'")
    result = service.sync_user(db, name)
    return SyncResponse.model_validate(result)


@router.post(
    "/{name}/profile",
    response_model=UserProfileResponse,
    summary="Refresh user profile",
    responses=_NOT_FOUND,
)
@limiter.limit(RATE_LIMIT_SYNC)
def refresh_profile(
        request: Request,  # Required for rate limiting
        name: str,
        db: Session = Depends(get_db),
        service: InventorySyncService = Depends(get_inventory_sync_service),
) -> UserProfileResponse:
    """
    Re-fetch nickname and avatar. Does not record a snapshot.
    """
    user = service.refresh_profile(db, name)
    return UserProfileResponse.model_validate(user)


@router.post(
    "/{name}/inventory",
    response_model=InventoryRefreshResponse,
    summary="Refresh user inventory",
    responses={
        **_NOT_FOUND,
        400: {"description": "Inventory has no tracked items", "model": ErrorDetail},
    },
)
@limiter.limit(RATE_LIMIT_SYNC)
def refresh_inventory(
        request: Request,  # Required for rate limiting
        name: str,
        db: Session = Depends(get_db),
        service: InventorySyncService = Depends(get_inventory_sync_service),
) -> InventoryRefreshResponse:
    """
    Re-fetch the inventory and reconcile owned item counts.

    No prices are fetched and no snapshot is recorded; the time series keeps
    valuing past snapshots with the new counts.
    """
    result = service.refresh_inventory(db, name)
    return InventoryRefreshResponse(
        user_id=result.user_id,
        item_count=result.item_count,
        items=[InventoryItemResponse.model_validate(item) for item in result.items],
    )
