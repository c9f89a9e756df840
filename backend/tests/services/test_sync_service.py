# backend/tests/services/test_sync_service.py
"""
Integration tests for InventorySyncService.

Mock providers stand in for Steam and the currency API; the database is a
real in-memory SQLite instance.

Test Coverage:
- Full sync pipeline and the snapshot it records
- Cache hits make no external calls
- All-or-nothing behavior on price lookup failures
- Name resolution (vanity alias, raw id, unknown names)
- Profile-only and inventory-only refreshes
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select, func

from app.models import Snapshot, PricePoint, User
from app.services.exceptions import (
    CurrencyRateUnavailableError,
    EmptyInventoryError,
    IdentityNotFoundError,
    PriceFetchIncompleteError,
)
from tests.conftest import STEAM_ID

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
OTHER_ID = "76561198000000002"


def snapshot_count(db) -> int:
    return db.scalar(select(func.count()).select_from(Snapshot))


# =============================================================================
# SYNC
# =============================================================================

class TestSyncUser:
    """Tests for the unconditional sync pipeline."""

    def test_sync_records_snapshot(self, db, sync_service):
        """{A: 2 @ 10, B: 1 @ 5} totals 25.00 USD."""
        result = sync_service.sync_user(db, "gaben", now=T0)

        assert result.user_id == STEAM_ID
        assert result.item_count == 2
        assert result.total_value == Decimal("25.00")
        assert result.base_currency == "USD"
        assert result.rates == {"EUR": Decimal("0.9")}
        assert result.taken_at == T0
        assert snapshot_count(db) == 1

    def test_valuation_after_sync(self, db, sync_service):
        sync_service.sync_user(db, "gaben", now=T0)

        view = sync_service.get_valuation(db, "gaben", now=T0 + timedelta(minutes=5))
        series = {p.currency: p.value for p in view.valuation.time_series}

        assert view.valuation.total_value == Decimal("25.00")
        assert series == {"USD": Decimal("25.00"), "EUR": Decimal("22.50")}

    def test_second_sync_reconciles_and_keeps_history(
            self, db, sync_service, inventory_provider,
    ):
        first = sync_service.sync_user(db, "gaben", now=T0)
        inventory_provider.set_inventory(STEAM_ID, {
            "A": ("Chroma Case", 2),
            "C": ("Spectrum Case", 3),
        })

        second = sync_service.sync_user(db, "gaben", now=T0 + timedelta(hours=4))

        assert second.total_value == Decimal("32.00")
        assert sync_service.store.get_ownership(db, STEAM_ID) == {"A": 2, "C": 3}
        assert snapshot_count(db) == 2

        # Prices of the first snapshot are untouched
        first_prices = dict(db.execute(
            select(PricePoint.item_id, PricePoint.price)
            .where(PricePoint.snapshot_id == first.snapshot_id)
        ).all())
        assert first_prices == {"A": Decimal("10.00"), "B": Decimal("5.00")}

        # ... and it is now valued with the current counts: only A x2 matches
        view = sync_service.get_valuation(db, "gaben", now=T0 + timedelta(hours=4, minutes=1))
        usd = [p for p in view.valuation.time_series if p.currency == "USD"]
        assert [p.value for p in usd] == [Decimal("20.00"), Decimal("32.00")]

    def test_price_failure_writes_nothing(self, db, sync_service, inventory_provider):
        inventory_provider.failing_items = {"Gamma Case"}

        with pytest.raises(PriceFetchIncompleteError) as exc_info:
            sync_service.sync_user(db, "gaben", now=T0)

        assert exc_info.value.failed_item_ids == ["B"]
        assert exc_info.value.user_id == STEAM_ID
        assert snapshot_count(db) == 0
        assert db.scalar(select(func.count()).select_from(User)) == 0

    def test_price_failure_keeps_previous_snapshot(self, db, sync_service, inventory_provider):
        sync_service.sync_user(db, "gaben", now=T0)
        inventory_provider.set_inventory(STEAM_ID, {"C": ("Spectrum Case", 3)})
        inventory_provider.failing_items = {"Spectrum Case"}

        with pytest.raises(PriceFetchIncompleteError):
            sync_service.sync_user(db, "gaben", now=T0 + timedelta(hours=4))

        assert snapshot_count(db) == 1
        assert sync_service.store.get_ownership(db, STEAM_ID) == {"A": 2, "B": 1}

    def test_empty_inventory_fails(self, db, sync_service, inventory_provider):
        inventory_provider.set_inventory(STEAM_ID, {"S": ("AK-47 | Redline", 1)})

        with pytest.raises(EmptyInventoryError):
            sync_service.sync_user(db, "gaben", now=T0)

        assert inventory_provider.calls["price"] == 0
        assert snapshot_count(db) == 0

    def test_unknown_name(self, db, sync_service):
        with pytest.raises(IdentityNotFoundError) as exc_info:
            sync_service.sync_user(db, "nobody", now=T0)

        assert exc_info.value.resource_id == "nobody"

    def test_missing_tracked_rate_fails(self, db, sync_service, currency_provider):
        currency_provider.rates = {"PLN": Decimal("4")}

        with pytest.raises(CurrencyRateUnavailableError) as exc_info:
            sync_service.sync_user(db, "gaben", now=T0)

        assert exc_info.value.missing == ["EUR"]
        assert snapshot_count(db) == 0

    def test_sync_by_external_id_stores_no_alias(self, db, sync_service):
        sync_service.sync_user(db, STEAM_ID, now=T0)

        assert sync_service.store.get_user(db, STEAM_ID).vanity_name is None

    def test_sync_by_alias_stores_alias(self, db, sync_service):
        sync_service.sync_user(db, "gaben", now=T0)

        assert sync_service.store.get_user(db, STEAM_ID).vanity_name == "gaben"

    def test_released_alias_no_longer_resolves(self, db, sync_service, inventory_provider):
        sync_service.sync_user(db, "gaben", now=T0)
        del inventory_provider.aliases["gaben"]

        with pytest.raises(IdentityNotFoundError):
            sync_service.sync_user(db, "gaben", now=T0 + timedelta(hours=4))

        assert snapshot_count(db) == 1

    def test_reassigned_alias_syncs_new_owner(self, db, sync_service, inventory_provider):
        sync_service.sync_user(db, "gaben", now=T0)
        inventory_provider.add_account(OTHER_ID, "Other", alias="gaben")
        inventory_provider.set_inventory(OTHER_ID, {"C": ("Spectrum Case", 3)})

        result = sync_service.sync_user(db, "gaben", now=T0 + timedelta(hours=4))

        assert result.user_id == OTHER_ID
        assert sync_service.store.get_user(db, OTHER_ID).vanity_name == "gaben"
        assert sync_service.store.get_user(db, STEAM_ID).vanity_name is None
        assert sync_service.store.get_ownership(db, STEAM_ID) == {"A": 2, "B": 1}
        assert sync_service.store.get_ownership(db, OTHER_ID) == {"C": 3}


# =============================================================================
# VALUATION / CACHE
# =============================================================================

class TestGetValuation:
    """Tests for cache-aware valuation serving."""

    def test_first_view_syncs(self, db, sync_service, inventory_provider):
        view = sync_service.get_valuation(db, "gaben", now=T0)

        assert view.served_from_cache is False
        assert view.cache_reason == "never_synced"
        assert view.user.display_name == "Gabe"
        assert inventory_provider.calls["inventory"] == 1

    def test_fresh_cache_makes_no_external_calls(
            self, db, sync_service, inventory_provider, currency_provider,
    ):
        sync_service.sync_user(db, "gaben", now=T0)
        calls_before = inventory_provider.total_calls
        rate_calls_before = currency_provider.call_count

        view = sync_service.get_valuation(db, "gaben", now=T0 + timedelta(minutes=179))

        assert view.served_from_cache is True
        assert view.cache_reason == "fresh_179_minutes_old"
        assert inventory_provider.total_calls == calls_before
        assert currency_provider.call_count == rate_calls_before
        assert snapshot_count(db) == 1

    def test_cache_hit_by_external_id(self, db, sync_service, inventory_provider):
        sync_service.sync_user(db, "gaben", now=T0)
        calls_before = inventory_provider.total_calls

        view = sync_service.get_valuation(db, STEAM_ID, now=T0 + timedelta(minutes=1))

        assert view.served_from_cache is True
        assert inventory_provider.total_calls == calls_before

    def test_stale_cache_syncs(self, db, sync_service):
        sync_service.sync_user(db, "gaben", now=T0)

        view = sync_service.get_valuation(db, "gaben", now=T0 + timedelta(minutes=181))

        assert view.served_from_cache is False
        assert view.cache_reason == "snapshot_181_minutes_old"
        assert snapshot_count(db) == 2

    def test_stale_alias_is_resolved_again(self, db, sync_service, inventory_provider):
        """A stale view looks the name up again and serves its current owner."""
        sync_service.sync_user(db, "gaben", now=T0)
        inventory_provider.add_account(OTHER_ID, "Other", alias="gaben")
        inventory_provider.set_inventory(OTHER_ID, {"C": ("Spectrum Case", 3)})

        view = sync_service.get_valuation(db, "gaben", now=T0 + timedelta(hours=4))

        assert view.user.id == OTHER_ID
        assert view.valuation.total_value == Decimal("12.00")

    def test_force_refresh_syncs_fresh_user(self, db, sync_service):
        sync_service.sync_user(db, "gaben", now=T0)

        view = sync_service.get_valuation(
            db, "gaben", force_refresh=True, now=T0 + timedelta(minutes=1)
        )

        assert view.cache_reason == "forced"
        assert snapshot_count(db) == 2

    def test_failed_refresh_propagates(self, db, sync_service, inventory_provider):
        """A stale user whose re-sync fails gets the error, not stale data."""
        sync_service.sync_user(db, "gaben", now=T0)
        inventory_provider.failing_items = {"Chroma Case"}

        with pytest.raises(PriceFetchIncompleteError):
            sync_service.get_valuation(db, "gaben", now=T0 + timedelta(hours=4))

        assert snapshot_count(db) == 1

    def test_get_cached_snapshot(self, db, sync_service):
        assert sync_service.get_cached_snapshot(db, STEAM_ID, now=T0) is None

        result = sync_service.sync_user(db, "gaben", now=T0)

        cached = sync_service.get_cached_snapshot(db, STEAM_ID, now=T0 + timedelta(minutes=10))
        assert cached.id == result.snapshot_id
        assert sync_service.get_cached_snapshot(db, STEAM_ID, now=T0 + timedelta(hours=3)) is None


# =============================================================================
# REFRESHES
# =============================================================================

class TestRefreshes:
    """Tests for profile-only and inventory-only refreshes."""

    def test_refresh_profile_updates_display_name(self, db, sync_service, inventory_provider):
        sync_service.sync_user(db, "gaben", now=T0)
        inventory_provider.add_account(STEAM_ID, "Gabe Newell", alias="gaben")

        user = sync_service.refresh_profile(db, "gaben")

        assert user.display_name == "Gabe Newell"
        assert inventory_provider.calls["price"] == 2
        assert snapshot_count(db) == 1

    def test_refresh_inventory_reconciles_without_prices(
            self, db, sync_service, inventory_provider,
    ):
        sync_service.sync_user(db, "gaben", now=T0)
        inventory_provider.set_inventory(STEAM_ID, {"A": ("Chroma Case", 5)})
        price_calls_before = inventory_provider.calls["price"]

        result = sync_service.refresh_inventory(db, "gaben")

        assert result.user_id == STEAM_ID
        assert result.item_count == 5
        assert sync_service.store.get_ownership(db, STEAM_ID) == {"A": 5}
        assert inventory_provider.calls["price"] == price_calls_before
        assert snapshot_count(db) == 1

    def test_refresh_inventory_released_alias(self, db, sync_service, inventory_provider):
        sync_service.sync_user(db, "gaben", now=T0)
        del inventory_provider.aliases["gaben"]

        with pytest.raises(IdentityNotFoundError):
            sync_service.refresh_inventory(db, "gaben")

        assert sync_service.store.get_ownership(db, STEAM_ID) == {"A": 2, "B": 1}

    def test_refresh_inventory_for_new_user(self, db, sync_service):
        result = sync_service.refresh_inventory(db, "gaben")

        assert result.user_id == STEAM_ID
        assert sync_service.store.get_user(db, STEAM_ID).display_name == "Gabe"
        assert snapshot_count(db) == 0
