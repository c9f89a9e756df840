# backend/app/services/inventory/__init__.py
"""
Inventory processing: normalization and concurrent pricing.

Data Flow:
    RawInventory -> normalize_inventory() -> list[NormalizedItem]
    list[NormalizedItem] -> ConcurrentPriceFetcher -> list[PricedItem]
"""

from app.services.inventory.normalizer import NormalizedItem, normalize_inventory
from app.services.inventory.price_fetcher import PricedItem, ConcurrentPriceFetcher

__all__ = [
    "NormalizedItem",
    "normalize_inventory",
    "PricedItem",
    "ConcurrentPriceFetcher",
]
