# backend/app/services/inventory/normalizer.py
"""
Turn a raw inventory payload into a deduplicated list of counted items.

The inventory endpoint returns one record per owned copy (assets) and a
separate description list that may repeat the same item. Only marketable
items whose name contains the category marker survive.

Example:
    units:        [A, A, B, C]
    descriptions: [A "Chroma Case", A "Chroma Case", B "Sticker", C "Gamma Case"]
    result:       [A x2, C x1]   (B filtered out, second A description dropped)
"""

import logging
from collections import Counter
from dataclasses import dataclass

from app.services.gateway.base import RawInventory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NormalizedItem:
    """
    One distinct item held by a user.

    Attributes:
        item_id: Catalog identity (unique in a normalized list)
        name: Display / market lookup name
        icon_ref: Icon hash
        count: Number of owned copies
    """

    item_id: str
    name: str
    icon_ref: str
    count: int


def normalize_inventory(
        raw: RawInventory,
        category_marker: str = "Case",
) -> list[NormalizedItem]:
    """
    Filter, deduplicate and count a raw inventory.

    Args:
        raw: Owned units plus descriptions from the inventory provider
        category_marker: Substring an item name must contain to be kept

    Returns:
        Items in first-seen description order; empty when nothing qualifies
    """
    counts = Counter(unit.item_id for unit in raw.owned_units)

    seen: set[str] = set()
    items: list[NormalizedItem] = []
    for description in raw.descriptions:
        if not description.marketable or category_marker not in description.name:
            continue
        if description.item_id in seen:
            continue
        seen.add(description.item_id)
        items.append(NormalizedItem(
            item_id=description.item_id,
            name=description.name,
            icon_ref=description.icon_ref,
            count=counts.get(description.item_id, 0),
        ))

    logger.debug(
        f"Normalized inventory: {len(raw.descriptions)} descriptions -> "
        f"{len(items)} '{category_marker}' items"
    )
    return items
