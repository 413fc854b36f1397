"""
item_catalog.py — Static item metadata (ItemRecord) keyed by item id.

The game's item tables are exported elsewhere into a JSON array; this module
only loads that export and answers lookups. Records are immutable: every
field is derived once from the static data and never mutated.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ItemRecord:
    item_id: int
    name: str
    icon_id: int = 0
    category_id: int = 0
    category_name: str = ""
    item_level: int = 0
    is_unique: bool = False
    is_untradeable: bool = False
    is_indisposable: bool = False
    can_be_purchased_from_vendor: bool = False

    @classmethod
    def from_dict(cls, raw: dict) -> Optional["ItemRecord"]:
        """Build a record from one JSON entry. Returns None if the entry is unusable."""
        try:
            item_id = int(raw.get("item_id", 0))
            if item_id <= 0:
                return None
            return cls(
                item_id=item_id,
                name=str(raw.get("name", "")),
                icon_id=int(raw.get("icon_id", 0) or 0),
                category_id=int(raw.get("category_id", 0) or 0),
                category_name=str(raw.get("category_name", "")),
                item_level=int(raw.get("item_level", 0) or 0),
                is_unique=bool(raw.get("is_unique", False)),
                is_untradeable=bool(raw.get("is_untradeable", False)),
                is_indisposable=bool(raw.get("is_indisposable", False)),
                can_be_purchased_from_vendor=bool(raw.get("can_be_purchased_from_vendor", False)),
            )
        except (TypeError, ValueError):
            return None


class ItemCatalog:
    """Read-only id → ItemRecord map."""

    def __init__(self, records: Iterable[ItemRecord] = ()):
        self._items: Dict[int, ItemRecord] = {r.item_id: r for r in records}

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[ItemRecord]:
        return iter(self._items.values())

    def __contains__(self, item_id: int) -> bool:
        return item_id in self._items

    def get(self, item_id: int) -> Optional[ItemRecord]:
        return self._items.get(item_id)

    @classmethod
    def load(cls, path: Path) -> "ItemCatalog":
        """Load a catalog export. Missing or malformed files give an empty catalog."""
        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
        except FileNotFoundError:
            logger.warning(f"Item catalog not found at {path}; nothing will be discardable")
            return cls()
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read item catalog {path}: {e}")
            return cls()

        if not isinstance(raw, list):
            logger.warning(f"Item catalog {path} must be a JSON array")
            return cls()

        records = []
        skipped = 0
        for entry in raw:
            record = ItemRecord.from_dict(entry) if isinstance(entry, dict) else None
            if record is None:
                skipped += 1
                continue
            records.append(record)
        if skipped:
            logger.debug(f"Item catalog: skipped {skipped} malformed entries")
        logger.info(f"Item catalog loaded: {len(records)} items")
        return cls(records)
