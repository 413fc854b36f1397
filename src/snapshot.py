"""
snapshot.py — Categorized view of the current inventory.

Builds CategoryGroups from a raw slot read: one entry per distinct item per
UI category, quantities summed across stacks, each carrying a fresh
eligibility decision. Groups are rebuilt from scratch on every refresh and
never patched in place.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set, Tuple

from eligibility import ListManager
from inventory import InventorySlotEntry
from item_catalog import ItemCatalog

logger = logging.getLogger(__name__)


@dataclass
class InventoryItemInfo:
    item_id: int
    name: str
    icon_id: int
    category_name: str
    quantity: int
    item_level: int
    can_be_discarded: bool
    # Display-only market state; filled in by the price cache
    market_price: Optional[int] = None
    market_price_is_hq: Optional[bool] = None
    market_price_loading: bool = False
    market_data: Optional[object] = None


@dataclass
class CategoryGroup:
    category_id: int
    category_name: str
    items: List[InventoryItemInfo] = field(default_factory=list)
    total_items: int = 0
    total_quantity: int = 0


def build_snapshot(raw_slots: Iterable[Optional[InventorySlotEntry]],
                   catalog: ItemCatalog,
                   list_manager: ListManager) -> List[CategoryGroup]:
    """Group raw slots by (category id, category name).

    Empty slots (item id 0) and items with no catalog record are dropped.
    Output order is deterministic: categories by name then id, items by
    name then id.
    """
    grouped: Dict[Tuple[int, str], Dict[int, List[InventorySlotEntry]]] = {}
    for entry in raw_slots:
        if entry is None or entry.item_id == 0:
            continue
        record = catalog.get(entry.item_id)
        if record is None:
            continue
        key = (record.category_id, record.category_name)
        grouped.setdefault(key, {}).setdefault(entry.item_id, []).append(entry)

    groups = []
    for (category_id, category_name), by_item in grouped.items():
        items = []
        for item_id, entries in by_item.items():
            record = catalog.get(item_id)
            items.append(InventoryItemInfo(
                item_id=item_id,
                name=record.name,
                icon_id=record.icon_id,
                category_name=record.category_name,
                quantity=sum(e.quantity for e in entries),
                item_level=record.item_level,
                can_be_discarded=list_manager.is_discardable(record),
            ))
        items.sort(key=lambda i: (i.name, i.item_id))
        groups.append(CategoryGroup(
            category_id=category_id,
            category_name=category_name,
            items=items,
            total_items=len(items),
            total_quantity=sum(i.quantity for i in items),
        ))

    groups.sort(key=lambda g: (g.category_name, g.category_id))
    return groups


def all_items(groups: Iterable[CategoryGroup]) -> List[InventoryItemInfo]:
    return [item for group in groups for item in group.items]


def cleanup_discard_list(groups: Iterable[CategoryGroup], selection: Set[int]) -> Set[int]:
    """Drop every non-discardable item in the snapshot from the selection.

    Mutates `selection` in place (it's the persisted settings set) and
    returns the ids that were removed, so the caller knows whether to save.
    """
    non_discardable = {i.item_id for i in all_items(groups) if not i.can_be_discarded}
    removed = selection & non_discardable
    if removed:
        selection -= removed
        logger.info(f"Removed {len(removed)} non-discardable items from the discard list")
    return removed


# ─── Category selection ───────────────────────────
# Only discardable items take part: a category reads as selected when it has
# at least one discardable item and all of them are selected.

def discardable_items(group: CategoryGroup) -> List[InventoryItemInfo]:
    return [i for i in group.items if i.can_be_discarded]


def category_selection_state(group: CategoryGroup, selection: Set[int]) -> str:
    """Returns "all", "partial" or "none"."""
    candidates = discardable_items(group)
    selected = [i for i in candidates if i.item_id in selection]
    if candidates and len(selected) == len(candidates):
        return "all"
    if selected:
        return "partial"
    return "none"


def set_category_selected(group: CategoryGroup, selection: Set[int], selected: bool) -> int:
    """Select or deselect every discardable item in the category. Returns the count touched."""
    candidates = discardable_items(group)
    for item in candidates:
        if selected:
            selection.add(item.item_id)
        else:
            selection.discard(item.item_id)
    return len(candidates)


def items_to_discard(groups: Iterable[CategoryGroup], selection: Set[int]) -> List[InventoryItemInfo]:
    """Preview: selected items present in inventory that can actually be discarded."""
    return [i for i in all_items(groups) if i.can_be_discarded and i.item_id in selection]


def total_market_value(items: Iterable[InventoryItemInfo]) -> int:
    return sum(i.market_price * i.quantity for i in items if i.market_price is not None)
