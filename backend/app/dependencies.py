# backend/app/dependencies.py
"""
Dependency injection module for FastAPI services.

This module provides singleton service instances that are shared across
all requests. Sharing matters here: the SnapshotStore holds the per-user
write locks, and the gateway holds pooled HTTP connections.

Services are lazily initialized on first use to avoid import-time side effects.

Usage in routers:
    from app.dependencies import get_inventory_sync_service

    @router.get("/{name}")
    def get_user_valuation(
        service: InventorySyncService = Depends(get_inventory_sync_service),
    ):
        ...

Tests replace these with app.dependency_overrides.
"""

import logging
from datetime import timedelta
from functools import lru_cache

from app.config import settings
from app.services.gateway import SteamGateway, CurrencyApiProvider
from app.services.inventory import ConcurrentPriceFetcher
from app.services.snapshot_store import SnapshotStore
from app.services.sync import InventorySyncService, StalenessPolicy
from app.services.valuation import ValuationAggregator

logger = logging.getLogger(__name__)


# =============================================================================
# SINGLETON SERVICE INSTANCES
# =============================================================================
# Using @lru_cache ensures the function returns the same instance on every call
#
# Order matters: define dependencies before dependents
# 1. get_inventory_provider (no deps)
# 2. get_currency_provider (no deps)
# 3. get_snapshot_store (no deps)
# 4. get_valuation_aggregator (no deps)
# 5. get_inventory_sync_service (depends on all of the above)


@lru_cache(maxsize=1)
def get_inventory_provider() -> SteamGateway:
    """
    Get the singleton Steam gateway.

    One shared httpx client keeps connections to Steam pooled across requests.
    """
    logger.debug("Initializing singleton SteamGateway")
    return SteamGateway(
        api_key=settings.steam_api_key,
        app_id=settings.steam_app_id,
        context_id=settings.steam_context_id,
        market_currency=settings.steam_market_currency,
        timeout=settings.http_timeout_seconds,
        max_attempts=settings.external_max_retry_attempts,
    )


@lru_cache(maxsize=1)
def get_currency_provider() -> CurrencyApiProvider:
    """Get the singleton currency rate provider."""
    logger.debug("Initializing singleton CurrencyApiProvider")
    return CurrencyApiProvider(
        base_url=settings.currency_api_url,
        timeout=settings.http_timeout_seconds,
        max_attempts=settings.external_max_retry_attempts,
    )


@lru_cache(maxsize=1)
def get_snapshot_store() -> SnapshotStore:
    """
    Get the singleton SnapshotStore.

    Must be shared: the per-user write locks only serialize syncs that go
    through the same store instance.
    """
    logger.debug("Initializing singleton SnapshotStore")
    return SnapshotStore()


@lru_cache(maxsize=1)
def get_valuation_aggregator() -> ValuationAggregator:
    """Get the singleton ValuationAggregator."""
    return ValuationAggregator(base_currency=settings.base_currency)


@lru_cache(maxsize=1)
def get_inventory_sync_service() -> InventorySyncService:
    """
    Get the singleton InventorySyncService wired from settings.
    """
    logger.debug("Initializing singleton InventorySyncService")
    provider = get_inventory_provider()
    return InventorySyncService(
        inventory_provider=provider,
        currency_provider=get_currency_provider(),
        store=get_snapshot_store(),
        aggregator=get_valuation_aggregator(),
        staleness_policy=StalenessPolicy(
            timedelta(minutes=settings.freshness_window_minutes)
        ),
        price_fetcher=ConcurrentPriceFetcher(
            provider,
            max_workers=settings.price_fetch_max_workers,
        ),
        base_currency=settings.base_currency,
        tracked_currencies=settings.tracked_currencies,
        category_marker=settings.item_category_marker,
    )


def close_providers() -> None:
    """Close the HTTP clients of initialized providers (application shutdown)."""
    if get_inventory_provider.cache_info().currsize:
        get_inventory_provider().close()
    if get_currency_provider.cache_info().currsize:
        get_currency_provider().close()
