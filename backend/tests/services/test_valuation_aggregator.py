# backend/tests/services/test_valuation_aggregator.py
"""
Integration tests for ValuationAggregator against an in-memory database.

Data is written through SnapshotStore so the tests exercise the same rows
a real sync produces.

Test Coverage:
- Holdings at the latest snapshot, ordering, min/max over all snapshots
- Time series in the base currency and every recorded rate
- Historical totals use current counts against snapshot prices
- Range filtering and empty users
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.services.inventory import PricedItem
from app.services.valuation import ValuationAggregator
from tests.conftest import STEAM_ID, make_profile

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(days=1)


def priced(item_id: str, name: str, count: int, price: str) -> PricedItem:
    return PricedItem(
        item_id=item_id,
        name=name,
        icon_ref=f"icon-{item_id}",
        count=count,
        price=Decimal(price),
    )


@pytest.fixture
def aggregator() -> ValuationAggregator:
    return ValuationAggregator(base_currency="USD")


@pytest.fixture
def two_snapshots(db, snapshot_store):
    """
    Snapshot 1 at T0: A x2 @ 10, B x1 @ 5, EUR 0.9
    Snapshot 2 at T1: A x2 @ 12, C x3 @ 4, EUR 0.8, PLN 4
    Current ownership after snapshot 2: {A: 2, C: 3}
    """
    first = snapshot_store.record_sync(
        db,
        make_profile(),
        [priced("A", "Chroma Case", 2, "10.00"), priced("B", "Gamma Case", 1, "5.00")],
        {"EUR": Decimal("0.9")},
        taken_at=T0,
    )
    second = snapshot_store.record_sync(
        db,
        make_profile(),
        [priced("A", "Chroma Case", 2, "12.00"), priced("C", "Spectrum Case", 3, "4.00")],
        {"EUR": Decimal("0.8"), "PLN": Decimal("4")},
        taken_at=T1,
    )
    return first.id, second.id


class TestHoldings:
    """Tests for get_holdings."""

    def test_holdings_priced_at_latest_snapshot(self, db, aggregator, two_snapshots):
        holdings = aggregator.get_holdings(db, STEAM_ID)

        assert [(h.item_id, h.count, h.price, h.value) for h in holdings] == [
            ("A", 2, Decimal("12.00"), Decimal("24.00")),
            ("C", 3, Decimal("4.00"), Decimal("12.00")),
        ]

    def test_min_max_span_all_snapshots(self, db, aggregator, two_snapshots):
        holdings = {h.item_id: h for h in aggregator.get_holdings(db, STEAM_ID)}

        assert holdings["A"].min_price == Decimal("10")
        assert holdings["A"].max_price == Decimal("12")
        assert holdings["C"].min_price == holdings["C"].max_price == Decimal("4")

    def test_holdings_at_older_snapshot(self, db, aggregator, two_snapshots):
        """Items not priced at the chosen snapshot have no price and value 0."""
        first_id, _ = two_snapshots

        holdings = {h.item_id: h for h in aggregator.get_holdings(db, STEAM_ID, snapshot_id=first_id)}

        assert holdings["A"].price == Decimal("10.00")
        assert holdings["C"].price is None
        assert holdings["C"].value == Decimal("0")

    def test_equal_values_sorted_by_name(self, db, snapshot_store, aggregator):
        snapshot_store.record_sync(
            db,
            make_profile(),
            [priced("Z", "Gamma Case", 1, "5.00"), priced("Y", "Chroma Case", 1, "5.00")],
            {},
            taken_at=T0,
        )

        names = [h.name for h in aggregator.get_holdings(db, STEAM_ID)]

        assert names == ["Chroma Case", "Gamma Case"]

    def test_unknown_user_has_no_holdings(self, db, aggregator):
        assert aggregator.get_holdings(db, STEAM_ID) == []


class TestTimeSeries:
    """Tests for get_time_series."""

    def test_historical_totals_use_current_ownership(self, db, aggregator, two_snapshots):
        """
        Snapshot 1 is valued with today's counts: A x2 @ 10 = 20.
        B is no longer owned, C had no price at snapshot 1.
        """
        first_id, second_id = two_snapshots

        points = aggregator.get_time_series(db, STEAM_ID)
        by_key = {(p.snapshot_id, p.currency): p.value for p in points}

        assert by_key[(first_id, "USD")] == Decimal("20.00")
        assert by_key[(first_id, "EUR")] == Decimal("18.00")
        assert by_key[(second_id, "USD")] == Decimal("36.00")
        assert by_key[(second_id, "EUR")] == Decimal("28.80")
        assert by_key[(second_id, "PLN")] == Decimal("144.00")

    def test_point_order(self, db, aggregator, two_snapshots):
        """Ordered by snapshot, base currency first, then codes alphabetically."""
        first_id, second_id = two_snapshots

        points = aggregator.get_time_series(db, STEAM_ID)

        assert [(p.snapshot_id, p.currency) for p in points] == [
            (first_id, "USD"),
            (first_id, "EUR"),
            (second_id, "USD"),
            (second_id, "EUR"),
            (second_id, "PLN"),
        ]

    def test_missing_rate_has_no_point(self, db, aggregator, two_snapshots):
        first_id, _ = two_snapshots

        points = aggregator.get_time_series(db, STEAM_ID)

        assert (first_id, "PLN") not in {(p.snapshot_id, p.currency) for p in points}

    def test_since_filters_snapshots(self, db, aggregator, two_snapshots):
        _, second_id = two_snapshots

        points = aggregator.get_time_series(db, STEAM_ID, since=T0 + timedelta(hours=1))

        assert {p.snapshot_id for p in points} == {second_id}

    def test_snapshot_covering_no_holdings_totals_zero(self, db, snapshot_store, aggregator):
        snapshot_store.record_sync(
            db, make_profile(), [priced("B", "Gamma Case", 1, "5.00")], {}, taken_at=T0
        )
        snapshot_store.record_sync(
            db, make_profile(), [priced("A", "Chroma Case", 1, "10.00")], {}, taken_at=T1
        )

        values = [p.value for p in aggregator.get_time_series(db, STEAM_ID)]

        assert values == [Decimal("0.00"), Decimal("10.00")]

    def test_timestamps_are_utc(self, db, aggregator, two_snapshots):
        points = aggregator.get_time_series(db, STEAM_ID)

        assert points[0].taken_at == T0
        assert points[0].taken_at.tzinfo is not None


class TestGetValuation:
    """Tests for the combined view."""

    def test_combined_view(self, db, aggregator, two_snapshots):
        _, second_id = two_snapshots

        valuation = aggregator.get_valuation(db, STEAM_ID)

        assert valuation.snapshot_id == second_id
        assert valuation.taken_at == T1
        assert valuation.total_value == Decimal("36.00")
        assert valuation.item_count == 5
        assert valuation.base_currency == "USD"

    def test_unknown_user(self, db, aggregator):
        valuation = aggregator.get_valuation(db, STEAM_ID)

        assert valuation.snapshot_id is None
        assert valuation.holdings == []
        assert valuation.time_series == []
        assert valuation.total_value == Decimal("0.00")
