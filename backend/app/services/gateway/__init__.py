# backend/app/services/gateway/__init__.py
"""
External gateway: identity, profile, inventory, spot prices and currency rates.
"""

from app.services.gateway.base import (
    ExternalProvider,
    InventoryProvider,
    CurrencyRateProvider,
    IdentityResult,
    ProfileInfo,
    OwnedUnit,
    ItemDescription,
    RawInventory,
)
from app.services.gateway.steam import SteamGateway
from app.services.gateway.currency import CurrencyApiProvider

__all__ = [
    "ExternalProvider",
    "InventoryProvider",
    "CurrencyRateProvider",
    "IdentityResult",
    "ProfileInfo",
    "OwnedUnit",
    "ItemDescription",
    "RawInventory",
    "SteamGateway",
    "CurrencyApiProvider",
]
