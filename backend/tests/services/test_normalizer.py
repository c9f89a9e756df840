# backend/tests/services/test_normalizer.py
"""
Unit tests for inventory normalization.

Pure logic, no database. Covers:
- Counting owned units per item
- Deduplication of repeated descriptions (first occurrence wins)
- Category marker and marketable filtering
"""

from app.services.gateway.base import RawInventory, OwnedUnit, ItemDescription
from app.services.inventory import normalize_inventory, NormalizedItem


def _description(item_id: str, name: str, marketable: bool = True, icon: str | None = None):
    return ItemDescription(
        item_id=item_id,
        name=name,
        icon_ref=icon or f"icon-{item_id}",
        marketable=marketable,
    )


def _units(*item_ids: str) -> list[OwnedUnit]:
    return [OwnedUnit(item_id=item_id) for item_id in item_ids]


class TestNormalizeInventory:
    """Tests for normalize_inventory."""

    def test_counts_units_and_drops_duplicates(self):
        """Units are counted per item; repeated descriptions collapse."""
        raw = RawInventory(
            owned_units=_units("A", "A", "B", "C"),
            descriptions=[
                _description("A", "Chroma Case"),
                _description("A", "Chroma Case"),
                _description("B", "AK-47 | Redline"),
                _description("C", "Gamma Case"),
            ],
        )

        items = normalize_inventory(raw)

        assert items == [
            NormalizedItem(item_id="A", name="Chroma Case", icon_ref="icon-A", count=2),
            NormalizedItem(item_id="C", name="Gamma Case", icon_ref="icon-C", count=1),
        ]

    def test_first_description_wins(self):
        """Later descriptions of the same item do not overwrite the first."""
        raw = RawInventory(
            owned_units=_units("A"),
            descriptions=[
                _description("A", "Chroma Case", icon="first"),
                _description("A", "Chroma Case", icon="second"),
            ],
        )

        items = normalize_inventory(raw)

        assert len(items) == 1
        assert items[0].icon_ref == "first"

    def test_non_marketable_items_are_dropped(self):
        """Items that cannot be listed on the market have no spot price."""
        raw = RawInventory(
            owned_units=_units("A", "B"),
            descriptions=[
                _description("A", "Chroma Case", marketable=False),
                _description("B", "Gamma Case"),
            ],
        )

        items = normalize_inventory(raw)

        assert [item.item_id for item in items] == ["B"]

    def test_custom_category_marker(self):
        """Only names containing the marker survive."""
        raw = RawInventory(
            owned_units=_units("A", "S"),
            descriptions=[
                _description("A", "Chroma Case"),
                _description("S", "Sticker Capsule"),
            ],
        )

        items = normalize_inventory(raw, category_marker="Capsule")

        assert [item.name for item in items] == ["Sticker Capsule"]

    def test_marker_is_case_sensitive(self):
        raw = RawInventory(
            owned_units=_units("A"),
            descriptions=[_description("A", "chroma case")],
        )

        assert normalize_inventory(raw) == []

    def test_empty_inventory(self):
        """An empty payload normalizes to an empty list."""
        assert normalize_inventory(RawInventory()) == []

    def test_item_ids_are_unique(self):
        raw = RawInventory(
            owned_units=_units("A", "A", "A", "B"),
            descriptions=[
                _description("A", "Chroma Case"),
                _description("B", "Gamma Case"),
                _description("A", "Chroma Case"),
                _description("B", "Gamma Case"),
            ],
        )

        items = normalize_inventory(raw)
        item_ids = [item.item_id for item in items]

        assert len(item_ids) == len(set(item_ids))
        assert {item.item_id: item.count for item in items} == {"A": 3, "B": 1}
