"""
settings.py — Persisted user settings (selection, exclusions, display and
market options).

Stored as JSON under SETTINGS_DIR. Unknown or malformed fields fall back to
defaults so a hand-edited or older file never prevents startup.
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Iterable, List, Optional, Set

from config import SETTINGS_FILE, MARKET_CACHE_TTL_MINUTES

logger = logging.getLogger(__name__)

SETTINGS_VERSION = 4

# Added to every exclusion list when migrating from version < 4
MIGRATION_V4_BLACKLIST_ITEM = 2820

# Sections the settings API may update
SETTINGS_SECTIONS = ("armoury", "context_menu", "preview", "inventory_browser", "market_price")


@dataclass
class ArmourySettings:
    discard_from_armoury_chest: bool = False
    check_main_hand_off_hand: bool = False
    check_left_side_gear: bool = False
    check_right_side_gear: bool = False
    maximum_gear_item_level: int = 45


@dataclass
class ContextMenuSettings:
    enabled: bool = True
    only_when_config_is_open: bool = False


@dataclass
class PreviewSettings:
    group_by_category: bool = True
    show_icons: bool = True


@dataclass
class InventoryBrowserSettings:
    group_by_category: bool = True
    show_item_counts: bool = True
    show_icons: bool = True
    expand_all_groups: bool = False


@dataclass
class MarketPriceSettings:
    show_prices: bool = True
    show_on_separate_line: bool = False
    show_total_value: bool = True
    # Query the whole data center instead of the current world
    use_data_center: bool = True
    # Retry once at data center scope when a world query fails
    fallback_to_data_center: bool = True
    show_hq_indicator: bool = True
    cache_timeout_minutes: int = MARKET_CACHE_TTL_MINUTES


@dataclass
class Settings:
    version: int = SETTINGS_VERSION
    items_to_discard: Set[int] = field(default_factory=set)
    blacklisted_items: List[int] = field(default_factory=list)
    armoury: ArmourySettings = field(default_factory=ArmourySettings)
    context_menu: ContextMenuSettings = field(default_factory=ContextMenuSettings)
    preview: PreviewSettings = field(default_factory=PreviewSettings)
    inventory_browser: InventoryBrowserSettings = field(default_factory=InventoryBrowserSettings)
    market_price: MarketPriceSettings = field(default_factory=MarketPriceSettings)

    @classmethod
    def create_new(cls, default_blacklist: Iterable[int] = ()) -> "Settings":
        return cls(blacklisted_items=list(default_blacklist))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["items_to_discard"] = sorted(self.items_to_discard)
        return data


def update_section(section, raw: Any) -> bool:
    """Copy well-typed fields from raw onto a settings section in place.

    Fields with the wrong type are ignored. Returns True if anything changed.
    """
    if not isinstance(raw, dict):
        return False
    changed = False
    for f in fields(section):
        if f.name not in raw:
            continue
        value = raw[f.name]
        default = getattr(section, f.name)
        # bool is an int subclass; keep the two apart
        if isinstance(default, bool):
            ok = isinstance(value, bool)
        else:
            ok = isinstance(value, int) and not isinstance(value, bool)
        if ok and value != default:
            setattr(section, f.name, value)
            changed = True
    if isinstance(section, MarketPriceSettings):
        section.cache_timeout_minutes = max(1, min(60, section.cache_timeout_minutes))
    return changed


def clamp_gear_item_level(armoury: ArmourySettings, max_level: int) -> bool:
    """Keep the armoury item level cap within [0, max_level]. Returns True if it moved."""
    clamped = max(0, min(max_level, armoury.maximum_gear_item_level))
    if clamped == armoury.maximum_gear_item_level:
        return False
    armoury.maximum_gear_item_level = clamped
    return True


def _coerce_section(cls, raw: Any):
    """Build a settings section dataclass, keeping defaults for bad fields."""
    section = cls()
    update_section(section, raw)
    return section


def _coerce_ids(raw: Any) -> List[int]:
    if not isinstance(raw, list):
        return []
    ids = []
    for value in raw:
        if isinstance(value, int) and not isinstance(value, bool) and value > 0 and value not in ids:
            ids.append(value)
    return ids


def settings_from_dict(raw: Any, default_blacklist: Iterable[int] = ()) -> Settings:
    if not isinstance(raw, dict):
        return Settings.create_new(default_blacklist)

    version = raw.get("version")
    settings = Settings(
        version=version if isinstance(version, int) else 0,
        items_to_discard=set(_coerce_ids(raw.get("items_to_discard"))),
        blacklisted_items=_coerce_ids(raw.get("blacklisted_items")),
        armoury=_coerce_section(ArmourySettings, raw.get("armoury")),
        context_menu=_coerce_section(ContextMenuSettings, raw.get("context_menu")),
        preview=_coerce_section(PreviewSettings, raw.get("preview")),
        inventory_browser=_coerce_section(InventoryBrowserSettings, raw.get("inventory_browser")),
        market_price=_coerce_section(MarketPriceSettings, raw.get("market_price")),
    )
    return settings


def migrate_settings(settings: Settings) -> bool:
    """Bring an older settings object up to SETTINGS_VERSION. Returns True if changed."""
    if settings.version >= SETTINGS_VERSION:
        return False
    if MIGRATION_V4_BLACKLIST_ITEM not in settings.blacklisted_items:
        settings.blacklisted_items.append(MIGRATION_V4_BLACKLIST_ITEM)
    logger.info(f"Migrated settings from version {settings.version} to {SETTINGS_VERSION}")
    settings.version = SETTINGS_VERSION
    return True


def load_settings(path: Optional[Path] = None, default_blacklist: Iterable[int] = ()) -> Settings:
    """Load settings from disk, falling back to a fresh default set.

    default_blacklist seeds the exclusion list of a fresh set (see
    GameConfig.default_blacklist); existing files keep their own list.
    """
    path = path or SETTINGS_FILE
    if not path.exists():
        return Settings.create_new(default_blacklist)
    try:
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)
    except Exception as e:
        logger.warning(f"Failed to load settings: {e}")
        return Settings.create_new(default_blacklist)

    settings = settings_from_dict(raw, default_blacklist)
    if migrate_settings(settings):
        save_settings(settings, path)
    return settings


def save_settings(settings: Settings, path: Optional[Path] = None):
    """Persist settings to disk."""
    path = path or SETTINGS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(settings.to_dict(), f, indent=2)
    except Exception as e:
        logger.warning(f"Failed to save settings: {e}")
