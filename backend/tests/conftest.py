# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite)
- Mock inventory / currency provider fixtures
- Sample data factories
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import threading
from decimal import Decimal
from typing import Iterator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import enable_sqlite_foreign_keys
from app.models import Base
from app.services.exceptions import ProfileNotFoundError, RateLimitError
from app.services.gateway.base import (
    InventoryProvider,
    CurrencyRateProvider,
    IdentityResult,
    ProfileInfo,
    RawInventory,
    OwnedUnit,
    ItemDescription,
)
from app.services.inventory import ConcurrentPriceFetcher
from app.services.snapshot_store import SnapshotStore
from app.services.sync import InventorySyncService


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", enable_sqlite_foreign_keys)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


# =============================================================================
# MOCK INVENTORY PROVIDER
# =============================================================================

STEAM_ID = "76561198000000001"


class MockInventoryProvider(InventoryProvider):
    """
    Mock implementation of InventoryProvider for testing.

    Holds one account per external id. Names resolve through `aliases`;
    17 digit ids resolve to themselves when the account exists.
    """

    def __init__(self):
        self.aliases: dict[str, str] = {}
        self.profiles: dict[str, ProfileInfo] = {}
        self.inventories: dict[str, RawInventory] = {}
        self.prices: dict[str, Decimal] = {}
        self.failing_items: set[str] = set()
        self._lock = threading.Lock()
        self.calls: dict[str, int] = {
            "resolve": 0,
            "profile": 0,
            "inventory": 0,
            "price": 0,
        }

    @property
    def name(self) -> str:
        return "mock-steam"

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    def add_account(
            self,
            external_id: str,
            display_name: str,
            alias: str | None = None,
            avatar_ref: str = "avatar-hash",
    ) -> None:
        """Register a resolvable account with an empty inventory."""
        self.profiles[external_id] = ProfileInfo(
            external_id=external_id,
            display_name=display_name,
            avatar_ref=avatar_ref,
        )
        self.inventories.setdefault(external_id, RawInventory())
        if alias:
            self.aliases[alias] = external_id

    def set_inventory(self, external_id: str, holdings: dict[str, tuple[str, int]]) -> None:
        """
        Configure an inventory as item_id -> (name, count).

        Every item is marketable; non-case items must use names without
        the category marker.
        """
        self.inventories[external_id] = make_raw_inventory(holdings)

    def _count(self, key: str) -> None:
        with self._lock:
            self.calls[key] += 1

    def resolve_identity(self, name: str) -> IdentityResult:
        self._count("resolve")
        external_id = self.aliases.get(name)
        if external_id is None and name in self.profiles:
            external_id = name
        return IdentityResult(external_id=external_id, found=external_id is not None)

    def fetch_profile(self, external_id: str) -> ProfileInfo:
        self._count("profile")
        if external_id not in self.profiles:
            raise ProfileNotFoundError(external_id)
        return self.profiles[external_id]

    def fetch_raw_inventory(self, external_id: str) -> RawInventory:
        self._count("inventory")
        return self.inventories.get(external_id, RawInventory())

    def fetch_spot_price(self, item_name: str) -> Decimal:
        self._count("price")
        if item_name in self.failing_items:
            raise RateLimitError(self.name, retry_after=60)
        return self.prices[item_name]


class MockCurrencyProvider(CurrencyRateProvider):
    """Mock implementation of CurrencyRateProvider with fixed rates."""

    def __init__(self, rates: dict[str, Decimal] | None = None):
        self.rates = rates if rates is not None else {
            "EUR": Decimal("0.9"),
            "PLN": Decimal("4"),
        }
        self.call_count = 0

    @property
    def name(self) -> str:
        return "mock-currency"

    def fetch_currency_rates(self, base_code: str) -> dict[str, Decimal]:
        self.call_count += 1
        return dict(self.rates)


# =============================================================================
# FACTORIES
# =============================================================================

def make_raw_inventory(holdings: dict[str, tuple[str, int]]) -> RawInventory:
    """Build a RawInventory with `count` owned units per item."""
    units = [
        OwnedUnit(item_id=item_id)
        for item_id, (_, count) in holdings.items()
        for _ in range(count)
    ]
    descriptions = [
        ItemDescription(
            item_id=item_id,
            name=name,
            icon_ref=f"icon-{item_id}",
            marketable=True,
        )
        for item_id, (name, _) in holdings.items()
    ]
    return RawInventory(owned_units=units, descriptions=descriptions)


def make_profile(
        external_id: str = STEAM_ID,
        display_name: str = "Gabe",
        vanity_name: str | None = None,
) -> ProfileInfo:
    return ProfileInfo(
        external_id=external_id,
        display_name=display_name,
        avatar_ref="avatar-hash",
        vanity_name=vanity_name,
    )


# =============================================================================
# SERVICE FIXTURES
# =============================================================================

@pytest.fixture
def inventory_provider() -> MockInventoryProvider:
    """
    Provider with one account, alias 'gaben', holding {A: 2, B: 1}.

    Prices: A = 10.00, B = 5.00, C = 4.00 USD.
    """
    provider = MockInventoryProvider()
    provider.add_account(STEAM_ID, "Gabe", alias="gaben")
    provider.set_inventory(STEAM_ID, {
        "A": ("Chroma Case", 2),
        "B": ("Gamma Case", 1),
    })
    provider.prices = {
        "Chroma Case": Decimal("10.00"),
        "Gamma Case": Decimal("5.00"),
        "Spectrum Case": Decimal("4.00"),
    }
    return provider


@pytest.fixture
def currency_provider() -> MockCurrencyProvider:
    return MockCurrencyProvider()


@pytest.fixture
def snapshot_store() -> SnapshotStore:
    return SnapshotStore()


@pytest.fixture
def sync_service(
        inventory_provider: MockInventoryProvider,
        currency_provider: MockCurrencyProvider,
        snapshot_store: SnapshotStore,
) -> InventorySyncService:
    """Sync service over the mocks: USD base, EUR tracked, 180 minute window."""
    return InventorySyncService(
        inventory_provider=inventory_provider,
        currency_provider=currency_provider,
        store=snapshot_store,
        price_fetcher=ConcurrentPriceFetcher(inventory_provider, max_workers=4),
        base_currency="USD",
        tracked_currencies=["EUR"],
    )
