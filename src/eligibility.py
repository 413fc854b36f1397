"""
eligibility.py — Which items may be discarded.

The rules are conservative: anything we can't positively classify as safe
(missing record, no UI category, currency, crystals, indisposable, unique
untradeable quest rewards) is not discardable. The user's exclusion list
always wins over every other fact.
"""

import logging
from typing import AbstractSet, Iterable, List, Optional

from item_catalog import ItemRecord

logger = logging.getLogger(__name__)


def can_be_configured(item: Optional[ItemRecord],
                      excluded_category_ids: AbstractSet[int] = frozenset()) -> bool:
    """Whether the item could ever be discarded, ignoring the exclusion list.

    Used to decide which items are offered for selection in the first place.
    """
    if item is None or item.item_id <= 0:
        return False
    if item.category_id <= 0 or item.category_id in excluded_category_ids:
        return False
    if item.is_indisposable:
        return False
    if item.is_unique and item.is_untradeable and not item.can_be_purchased_from_vendor:
        return False
    return True


def is_discardable(item: Optional[ItemRecord], blacklist: AbstractSet[int],
                   excluded_category_ids: AbstractSet[int] = frozenset()) -> bool:
    """Full eligibility decision for one item. Pure; never raises."""
    if item is None:
        return False
    if item.item_id in blacklist:
        return False
    return can_be_configured(item, excluded_category_ids)


class ListManager:
    """Owns the user's exclusion list ("never discard these").

    Pinned entries are always present and can't be removed; they are
    re-added by finish_initialization() after settings are loaded, in case
    an older settings file predates them.
    """

    def __init__(self, blacklisted_items: List[int],
                 pinned: Iterable[int] = (),
                 excluded_category_ids: AbstractSet[int] = frozenset()):
        # Shared with Settings so saving persists our edits
        self._items = blacklisted_items
        self._pinned = frozenset(pinned)
        self.excluded_category_ids = frozenset(excluded_category_ids)

    def finish_initialization(self) -> bool:
        """Ensure pinned entries are present. Returns True if the list changed."""
        missing = [i for i in sorted(self._pinned) if i not in self._items]
        self._items.extend(missing)
        if missing:
            logger.info(f"Exclusion list: restored {len(missing)} pinned entries")
        return bool(missing)

    @property
    def blacklist(self) -> frozenset:
        return frozenset(self._items) | self._pinned

    def is_blacklisted(self, item_id: int) -> bool:
        return item_id in self._pinned or item_id in self._items

    def is_pinned(self, item_id: int) -> bool:
        return item_id in self._pinned

    def add(self, item_id: int) -> bool:
        if item_id <= 0 or item_id in self._items:
            return False
        self._items.append(item_id)
        return True

    def remove(self, item_id: int) -> bool:
        if item_id in self._pinned:
            logger.warning(f"Item {item_id} is permanently excluded and can't be removed")
            return False
        if item_id not in self._items:
            return False
        self._items.remove(item_id)
        return True

    def is_discardable(self, item: Optional[ItemRecord]) -> bool:
        return is_discardable(item, self.blacklist, self.excluded_category_ids)

    def can_be_configured(self, item: Optional[ItemRecord]) -> bool:
        return can_be_configured(item, self.excluded_category_ids)
