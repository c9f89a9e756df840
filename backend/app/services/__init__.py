# backend/app/services/__init__.py
"""
Service layer for business logic.

This package contains the service layer which encapsulates business logic
separate from the API (router) layer. Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive database sessions as parameters (not via Depends)
- Are easily testable via dependency injection

Usage:
    from app.services import InventorySyncService
    from app.services import ValuationAggregator
    from app.services import (
        IdentityNotFoundError,
        PriceFetchIncompleteError,
    )

Architecture:
    services/
    ├── __init__.py              # This file - main exports
    ├── exceptions.py            # Domain exceptions
    ├── constants.py             # Business constants and limits
    ├── snapshot_store.py        # Atomic snapshot persistence + lookups
    ├── gateway/                 # External services
    │   ├── base.py              # Abstract provider interfaces + retry
    │   ├── http.py              # httpx helpers and error translation
    │   ├── steam.py             # Steam Web API / Community implementation
    │   └── currency.py          # currency-api implementation
    ├── inventory/               # Inventory processing
    │   ├── normalizer.py        # Filter, dedupe, count
    │   └── price_fetcher.py     # Concurrent all-or-nothing pricing
    ├── sync/                    # Sync orchestration
    │   ├── staleness.py         # Cache freshness policy
    │   └── service.py           # InventorySyncService
    └── valuation/               # Read-only valuation views
        ├── types.py             # Valuation data types
        └── aggregator.py        # Holdings + time series
"""

# Exceptions
from app.services.exceptions import (
    # Base exceptions
    ServiceError,
    ValidationError,
    NotFoundError,
    ExternalServiceError,
    SyncError,
    # Lookup
    IdentityNotFoundError,
    ProfileNotFoundError,
    # Inventory
    EmptyInventoryError,
    # External services
    ProviderUnavailableError,
    RateLimitError,
    MalformedResponseError,
    CurrencyRateUnavailableError,
    # Sync
    PriceFetchIncompleteError,
    PersistenceError,
)
# Gateway
from app.services.gateway import (
    InventoryProvider,
    CurrencyRateProvider,
    SteamGateway,
    CurrencyApiProvider,
)
# Inventory processing
from app.services.inventory import (
    NormalizedItem,
    normalize_inventory,
    PricedItem,
    ConcurrentPriceFetcher,
)
# Persistence
from app.services.snapshot_store import SnapshotStore
# Valuation
from app.services.valuation import ValuationAggregator
# Sync
from app.services.sync import (
    StalenessPolicy,
    InventorySyncService,
    SyncResult,
    ValuationView,
)

__all__ = [
    # ==========================================================================
    # Services
    # ==========================================================================
    "InventorySyncService",
    "SyncResult",
    "ValuationView",
    "StalenessPolicy",
    "SnapshotStore",
    "ValuationAggregator",
    # Inventory processing
    "NormalizedItem",
    "normalize_inventory",
    "PricedItem",
    "ConcurrentPriceFetcher",
    # Providers
    "InventoryProvider",
    "CurrencyRateProvider",
    "SteamGateway",
    "CurrencyApiProvider",

    # ==========================================================================
    # Exceptions
    # ==========================================================================
    # Base
    "ServiceError",
    "ValidationError",
    "NotFoundError",
    "ExternalServiceError",
    "SyncError",
    # Lookup
    "IdentityNotFoundError",
    "ProfileNotFoundError",
    # Inventory
    "EmptyInventoryError",
    # External services
    "ProviderUnavailableError",
    "RateLimitError",
    "MalformedResponseError",
    "CurrencyRateUnavailableError",
    # Sync
    "PriceFetchIncompleteError",
    "PersistenceError",
]
