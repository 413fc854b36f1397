"""
GameConfig — game-agnostic configuration dataclass.

Every game-specific value that the discard and pricing modules need is a
field here. Consumers create a GameConfig (via a game factory like
create_ffxiv_config) and hand it to the plugin, which passes the relevant
pieces to each module.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Tuple


@dataclass
class GameConfig:
    """Complete configuration for one game's discard/pricing rules."""

    # ── Identity ────────────────────────────────────────────
    game_id: str                          # e.g. "ffxiv"

    # ── Eligibility ─────────────────────────────────────────
    # UI categories that are never discardable (currency, crystals, ...)
    excluded_category_ids: FrozenSet[int] = field(default_factory=frozenset)
    # Exclusion list entries the user can never remove
    pinned_blacklist: FrozenSet[int] = field(default_factory=frozenset)
    # Exclusion list entries a fresh install starts with
    default_blacklist: Tuple[int, ...] = ()

    # ── Inventory containers ────────────────────────────────
    # Main bags, always scanned
    inventory_containers: Tuple[int, ...] = ()
    # Armoury chest groups, scanned only when enabled in settings
    armoury_main_off_hand: Tuple[int, ...] = ()
    armoury_left_side: Tuple[int, ...] = ()
    armoury_right_side: Tuple[int, ...] = ()
    max_gear_item_level: int = 0

    # ── Confirmation prompt ─────────────────────────────────
    # Regex patterns per locale: {"en": ["^Discard .+\\?$", ...], ...}
    discard_prompt_patterns: Dict[str, List[str]] = field(default_factory=dict)

    # ── Market data ─────────────────────────────────────────
    market_api_base: str = ""
    # World name → data center (region) name
    world_to_data_center: Dict[str, str] = field(default_factory=dict)
