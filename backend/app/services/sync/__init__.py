# backend/app/services/sync/__init__.py
"""
Sync orchestration: cache policy and the fetch -> price -> persist pipeline.
"""

from app.services.sync.staleness import StalenessPolicy
from app.services.sync.service import (
    InventorySyncService,
    SyncResult,
    InventoryRefreshResult,
    ValuationView,
)

__all__ = [
    "StalenessPolicy",
    "InventorySyncService",
    "SyncResult",
    "InventoryRefreshResult",
    "ValuationView",
]
