"""
inventory.py — Live inventory access.

The host owns the actual inventory; we only see it through an
InventorySource. Slot entries are snapshots of a single read and must not be
kept past the current polling tick: the game (or another plugin) can move,
stack or remove items at any time.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from core.game_config import GameConfig
from eligibility import ListManager
from item_catalog import ItemCatalog
from settings import ArmourySettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InventorySlotEntry:
    container: int
    slot: int
    item_id: int
    quantity: int = 1


@dataclass(frozen=True)
class ItemFilter:
    """The explicit set of item ids one discard run may touch."""

    item_ids: frozenset

    @classmethod
    def of(cls, item_ids: Iterable[int]) -> "ItemFilter":
        return cls(frozenset(int(i) for i in item_ids))

    def __contains__(self, item_id: int) -> bool:
        return item_id in self.item_ids

    def __len__(self) -> int:
        return len(self.item_ids)


class InventorySource:
    """Host-side inventory access. Implemented by the game adapter."""

    def is_available(self) -> bool:
        """False while logged out, zoning, or otherwise unreadable."""
        return True

    def enumerate_slots(self, containers: Iterable[int]) -> List[InventorySlotEntry]:
        """Read every occupied slot of the given containers, in container/slot order."""
        raise NotImplementedError

    def dispose(self, container: int, slot: int):
        """Ask the game to discard whatever is in (container, slot).

        Returns immediately; the game may or may not show a confirmation
        prompt, and may take a while to actually remove the item.
        """
        raise NotImplementedError


class StaticInventorySource(InventorySource):
    """In-memory inventory, for dry runs from a JSON dump and for tests.

    dispose() only records the request; the slot stays occupied until
    remove() is called, mirroring the game waiting on a confirmation. With
    remove_on_dispose the slot empties immediately, as if no prompt was shown.
    """

    def __init__(self, slots: Iterable[InventorySlotEntry] = (), available: bool = True,
                 remove_on_dispose: bool = False):
        self._slots = {(s.container, s.slot): s for s in slots}
        self.available = available
        self.remove_on_dispose = remove_on_dispose
        self.disposed: List[tuple] = []

    @classmethod
    def from_json(cls, path: Path, **kwargs) -> "StaticInventorySource":
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
        slots = [
            InventorySlotEntry(
                container=int(e["container"]),
                slot=int(e["slot"]),
                item_id=int(e["item_id"]),
                quantity=int(e.get("quantity", 1)),
            )
            for e in raw
        ]
        return cls(slots, **kwargs)

    def is_available(self) -> bool:
        return self.available

    def enumerate_slots(self, containers: Iterable[int]) -> List[InventorySlotEntry]:
        wanted = set(containers)
        return [s for key, s in sorted(self._slots.items()) if key[0] in wanted]

    def dispose(self, container: int, slot: int):
        self.disposed.append((container, slot))
        if self.remove_on_dispose:
            self.remove(container, slot)

    def put(self, entry: InventorySlotEntry):
        self._slots[(entry.container, entry.slot)] = entry

    def remove(self, container: int, slot: int):
        self._slots.pop((container, slot), None)

    def item_at(self, container: int, slot: int) -> Optional[InventorySlotEntry]:
        return self._slots.get((container, slot))


class InventoryScanner:
    """Reads the containers we're allowed to touch and picks discard targets."""

    def __init__(self, source: InventorySource, catalog: ItemCatalog,
                 list_manager: ListManager, game: GameConfig,
                 armoury: Optional[ArmourySettings] = None):
        self.source = source
        self.catalog = catalog
        self.list_manager = list_manager
        self.game = game
        self.armoury = armoury or ArmourySettings()

    def armoury_containers(self) -> List[int]:
        if not self.armoury.discard_from_armoury_chest:
            return []
        containers: List[int] = []
        if self.armoury.check_main_hand_off_hand:
            containers.extend(self.game.armoury_main_off_hand)
        if self.armoury.check_left_side_gear:
            containers.extend(self.game.armoury_left_side)
        if self.armoury.check_right_side_gear:
            containers.extend(self.game.armoury_right_side)
        return containers

    def containers(self) -> List[int]:
        return list(self.game.inventory_containers) + self.armoury_containers()

    def get_all_items(self) -> List[InventorySlotEntry]:
        """Every occupied slot in the scanned containers. Empty when unavailable."""
        if not self.source.is_available():
            return []
        return [s for s in self.source.enumerate_slots(self.containers()) if s.item_id != 0]

    def get_next_item_to_discard(self, item_filter: ItemFilter) -> Optional[InventorySlotEntry]:
        """First live slot whose item is in the filter and currently discardable."""
        armoury = set(self.armoury_containers())
        for entry in self.get_all_items():
            if entry.item_id not in item_filter:
                continue
            item = self.catalog.get(entry.item_id)
            if not self.list_manager.is_discardable(item):
                continue
            if entry.container in armoury and item.item_level >= self.armoury.maximum_gear_item_level:
                continue
            return entry
        return None

    def slot_at(self, container: int, slot: int) -> Optional[InventorySlotEntry]:
        """Fresh read of one slot. None when empty or the inventory is unavailable."""
        if not self.source.is_available():
            return None
        for entry in self.source.enumerate_slots([container]):
            if entry.slot == slot and entry.item_id != 0:
                return entry
        return None
