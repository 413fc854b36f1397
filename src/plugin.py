"""
plugin.py — Composes the discard manager and exposes what the host and
other plugins call.

The host calls tick() once per frame (or start() runs a frame loop on a
daemon thread for standalone use). Everything that touches inventory state
(refresh, selection edits, starting and stopping runs) goes through the
same lock as tick(), so the HTTP surface can call in from another thread.
"""

import time
import logging
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Deque, Dict, FrozenSet, Iterable, List, Optional

from config import MARKET_API_BASE
from confirmation import ConfirmationSurface, DiscardPromptMatcher
from core.game_config import GameConfig
from discard_sequencer import DiscardSequencer, RunSummary
from eligibility import ListManager
from inventory import InventoryScanner, InventorySource, ItemFilter
from item_catalog import ItemCatalog
from market_client import UniversalisClient, is_likely_marketable
from price_cache import MarketPriceCache
from settings import (
    SETTINGS_SECTIONS,
    Settings,
    clamp_gear_item_level,
    save_settings,
    update_section,
)
from snapshot import (
    CategoryGroup,
    InventoryItemInfo,
    all_items,
    build_snapshot,
    category_selection_state,
    cleanup_discard_list,
    items_to_discard,
    set_category_selected,
    total_market_value,
)

logger = logging.getLogger(__name__)

# Framework update rate for the standalone frame loop
FRAME_INTERVAL = 1.0 / 60

# Manager window tabs
TAB_INVENTORY = "inventory"
TAB_DISCARD = "discard"
TAB_SETTINGS = "settings"


@dataclass
class ChatMessage:
    text: str
    is_error: bool
    timestamp: float


@dataclass
class WindowState:
    is_open: bool = False
    tab: str = TAB_INVENTORY


class InventoryDiscardPlugin:
    """
    Usage:
        plugin = InventoryDiscardPlugin(game, settings, catalog, source, surface,
                                        world_provider=lambda: "Twintania")
        plugin.refresh_inventory()
        plugin.start_discarding()
        plugin.tick()   # every frame
    """

    def __init__(self, game: GameConfig, settings: Settings, catalog: ItemCatalog,
                 source: InventorySource, surface: ConfirmationSurface,
                 market_client: Optional[UniversalisClient] = None,
                 world_provider: Callable[[], str] = lambda: "",
                 settings_path: Optional[Path] = None,
                 clock: Callable[[], float] = time.monotonic,
                 price_cache: Optional[MarketPriceCache] = None):
        self.game = game
        self.settings = settings
        self.catalog = catalog
        self.world_provider = world_provider
        self.settings_path = settings_path

        self.list_manager = ListManager(
            settings.blacklisted_items,
            pinned=game.pinned_blacklist,
            excluded_category_ids=game.excluded_category_ids,
        )
        restored = self.list_manager.finish_initialization()
        clamped = clamp_gear_item_level(settings.armoury, game.max_gear_item_level)
        if restored or clamped:
            self.save()

        self.scanner = InventoryScanner(source, catalog, self.list_manager, game, settings.armoury)
        self.sequencer = DiscardSequencer(
            self.scanner, surface, DiscardPromptMatcher.for_game(game),
            clock=clock,
            notify=self._notify,
            on_finished=self._on_run_finished,
        )

        if price_cache is None:
            client = market_client or UniversalisClient(
                game.market_api_base or MARKET_API_BASE,
                world_to_data_center=game.world_to_data_center,
            )
            price_cache = MarketPriceCache(client, settings.market_price, clock=clock)
        self.prices = price_cache

        self.groups: List[CategoryGroup] = []
        self.window = WindowState()
        self.messages: Deque[ChatMessage] = deque(maxlen=50)

        self._lock = threading.RLock()
        self._running = False
        self._thread: Optional[threading.Thread] = None

    # ─── Frame loop ───────────────────────────────

    def tick(self):
        with self._lock:
            self.sequencer.tick()

    def start(self, interval: float = FRAME_INTERVAL):
        """Run tick() on a daemon thread until stop()."""
        if self._running:
            return
        self._running = True
        self._thread = threading.Thread(target=self._frame_loop, args=(interval,), daemon=True)
        self._thread.start()
        logger.info("Frame loop started")

    def stop(self):
        self._running = False
        if self._thread is not None:
            self._thread.join(timeout=2)
            self._thread = None
        with self._lock:
            self.sequencer.abort()

    def _frame_loop(self, interval: float):
        while self._running:
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Frame loop error: {e}", exc_info=True)
            time.sleep(interval)

    # ─── Inventory ────────────────────────────────

    def refresh_inventory(self, clear_prices: bool = False) -> List[CategoryGroup]:
        """Rebuild the categorized view and prune the selection of non-discardable ids."""
        with self._lock:
            if clear_prices:
                self.prices.clear()
            self.groups = build_snapshot(self.scanner.get_all_items(), self.catalog, self.list_manager)
            if cleanup_discard_list(self.groups, self.settings.items_to_discard):
                self.save()
            logger.debug(f"Inventory refreshed: {len(self.groups)} categories, "
                         f"{len(all_items(self.groups))} distinct items")
            self.prefetch_prices()
            return self.groups

    def prefetch_prices(self) -> List[InventoryItemInfo]:
        """Queue market lookups for discardable, plausibly marketable items on display."""
        if not self.settings.market_price.show_prices:
            return []
        candidates = [
            item for item in all_items(self.groups)
            if item.can_be_discarded and is_likely_marketable(item.item_id)
        ]
        return self.prices.batch_request(candidates, self.world_provider())

    def on_login(self):
        self.refresh_inventory()

    def on_logout(self):
        with self._lock:
            self.sequencer.abort()
            self.groups = []
            self.prices.clear()

    def preview(self) -> List[InventoryItemInfo]:
        """Items the next run would discard, as of the last refresh."""
        return items_to_discard(self.groups, self.settings.items_to_discard)

    def preview_value(self) -> int:
        return total_market_value(self.preview())

    # ─── Selection ────────────────────────────────

    def select_item(self, item_id: int, selected: bool = True) -> bool:
        with self._lock:
            if selected:
                if not self.list_manager.is_discardable(self.catalog.get(item_id)):
                    logger.info(f"Item {item_id} can't be discarded, not selecting it")
                    return False
                self.settings.items_to_discard.add(item_id)
            else:
                self.settings.items_to_discard.discard(item_id)
            self.save()
            return True

    def select_category(self, category_id: int, selected: bool = True) -> int:
        with self._lock:
            group = self._group(category_id)
            if group is None:
                return 0
            count = set_category_selected(group, self.settings.items_to_discard, selected)
            self.save()
            return count

    def category_state(self, category_id: int) -> str:
        group = self._group(category_id)
        if group is None:
            return "none"
        return category_selection_state(group, self.settings.items_to_discard)

    def set_excluded(self, item_id: int, excluded: bool = True) -> bool:
        """Add or remove an exclusion list entry, then rebuild the view."""
        with self._lock:
            if excluded:
                changed = self.list_manager.add(item_id)
            else:
                changed = self.list_manager.remove(item_id)
            if changed:
                self.save()
                self.refresh_inventory()
            return changed

    def _group(self, category_id: int) -> Optional[CategoryGroup]:
        return next((g for g in self.groups if g.category_id == category_id), None)

    # ─── Discarding ───────────────────────────────

    def start_discarding(self, item_ids: Optional[Iterable[int]] = None) -> bool:
        """Start a run over the given ids, or over the whole selection."""
        with self._lock:
            ids = self.settings.items_to_discard if item_ids is None else item_ids
            return self.sequencer.start_run(ItemFilter.of(ids))

    def abort_discarding(self):
        with self._lock:
            self.sequencer.abort()

    def _on_run_finished(self, summary: RunSummary):
        self.refresh_inventory()

    def _notify(self, text: str, is_error: bool = False):
        self.messages.append(ChatMessage(text, is_error, time.time()))
        if is_error:
            logger.error(text)
        else:
            logger.info(text)

    # ─── Inter-plugin queries ─────────────────────

    def get_items_to_discard(self) -> FrozenSet[int]:
        return frozenset(self.settings.items_to_discard)

    def is_running(self) -> bool:
        return self.sequencer.is_running

    # ─── Persistence ──────────────────────────────

    def save(self):
        save_settings(self.settings, self.settings_path)

    def update_settings(self, sections: Dict[str, Any]) -> bool:
        """Apply partial updates to settings sections, then save and refresh if anything changed.

        The armoury item level cap is kept within what the game allows.
        """
        with self._lock:
            changed = False
            for name, raw in sections.items():
                if name not in SETTINGS_SECTIONS:
                    logger.warning(f"Ignoring unknown settings section {name}")
                    continue
                changed |= update_section(getattr(self.settings, name), raw)
            changed |= clamp_gear_item_level(self.settings.armoury, self.game.max_gear_item_level)
            if changed:
                self.save()
                self.refresh_inventory()
            return changed

    def status(self) -> dict:
        summary = self.sequencer.last_summary
        return {
            "state": self.sequencer.state.value,
            "is_running": self.sequencer.is_running,
            "dispatched": self.sequencer.dispatched,
            "last_run": {
                "state": summary.state.value,
                "dispatched": summary.dispatched,
                "message": summary.message,
            } if summary else None,
            "window": {"is_open": self.window.is_open, "tab": self.window.tab},
            "selected": len(self.settings.items_to_discard),
            "categories": len(self.groups),
        }
