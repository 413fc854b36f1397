"""Shared fixtures for the discard manager test suite."""

import sys
import os
import logging
import tempfile
from pathlib import Path

import pytest

# Keep settings/log writes out of the real home directory
os.environ.setdefault("IDM_SETTINGS_DIR", tempfile.mkdtemp(prefix="idm-test-"))

# Ensure src/ is importable
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from eligibility import ListManager
from games.ffxiv import create_ffxiv_config
from inventory import InventorySlotEntry, StaticInventorySource
from item_catalog import ItemCatalog, ItemRecord
from confirmation import ConfirmationSurface
from market_client import FETCH_NOT_FOUND, FetchResult
from plugin import InventoryDiscardPlugin
from price_cache import MarketPriceCache
from settings import Settings

logger = logging.getLogger(__name__)


# ── Test doubles ─────────────────────────────────────────

class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeSurface(ConfirmationSurface):
    """Yes/No prompt whose visibility and text the test controls."""

    def __init__(self, text: str = ""):
        self.visible = False
        self.text = text
        self.accepted = 0
        self.on_accept = None

    def is_visible(self) -> bool:
        return self.visible

    def get_prompt_text(self) -> str:
        return self.text

    def accept(self):
        self.accepted += 1
        self.visible = False
        if self.on_accept is not None:
            self.on_accept()


# ── Item data ────────────────────────────────────────────

ITEMS = [
    ItemRecord(5111, "Copper Ore", icon_id=21201, category_id=48, category_name="Stone"),
    ItemRecord(5106, "Iron Ore", icon_id=21203, category_id=48, category_name="Stone"),
    ItemRecord(4850, "Honey", icon_id=25001, category_id=46, category_name="Ingredient"),
    ItemRecord(2, "Fire Shard", category_id=59, category_name="Crystal"),
    ItemRecord(1, "Gil", category_id=100, category_name="Currency"),
    ItemRecord(2820, "Red Onion Helm", category_id=34, category_name="Head", item_level=1),
    ItemRecord(16039, "Ala Mhigan Earrings", category_id=41, category_name="Earrings",
               item_level=1, is_untradeable=True),
    ItemRecord(7000, "Quest Key", category_id=61, category_name="Miscellany",
               is_unique=True, is_untradeable=True),
    ItemRecord(7001, "Vendor Trinket", category_id=61, category_name="Miscellany",
               is_unique=True, is_untradeable=True, can_be_purchased_from_vendor=True),
    ItemRecord(8000, "Bound Relic", category_id=61, category_name="Miscellany",
               is_indisposable=True),
    ItemRecord(9000, "Mystery Item", category_id=0, category_name=""),
    ItemRecord(3000, "Bronze Gladius", category_id=1, category_name="Gladiator's Arm",
               item_level=20),
    ItemRecord(3001, "Augmented Sword", category_id=1, category_name="Gladiator's Arm",
               item_level=710),
]


@pytest.fixture
def game():
    return create_ffxiv_config()


@pytest.fixture
def catalog():
    return ItemCatalog(ITEMS)


@pytest.fixture
def list_manager(game):
    lm = ListManager([2820], pinned=game.pinned_blacklist,
                     excluded_category_ids=game.excluded_category_ids)
    lm.finish_initialization()
    return lm


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def surface():
    return FakeSurface()


# ── Helper factories ─────────────────────────────────────

def make_slot(container, slot, item_id, quantity=1):
    """Shorthand for an InventorySlotEntry."""
    return InventorySlotEntry(container=container, slot=slot, item_id=item_id, quantity=quantity)


def make_source(*slots, **kwargs):
    """StaticInventorySource from (container, slot, item_id[, quantity]) tuples."""
    return StaticInventorySource([make_slot(*s) for s in slots], **kwargs)


class StubMarketClient:
    """Market client that never touches the network."""

    def __init__(self):
        self.calls = []

    def fetch(self, item_id, world, use_data_center=True, fallback_to_data_center=True):
        self.calls.append((item_id, world))
        return FetchResult(FETCH_NOT_FOUND)


@pytest.fixture
def plugin_factory(tmp_path, game, catalog, clock, surface):
    """Build a plugin over a static inventory.

    Price fetches are recorded as in flight but never run, so tests stay
    single-threaded and offline.
    """
    def make(*slots, settings=None, world="Odin", available=True, remove_on_dispose=True):
        settings = settings or Settings.create_new(game.default_blacklist)
        source = make_source(*slots, available=available, remove_on_dispose=remove_on_dispose)
        prices = MarketPriceCache(StubMarketClient(), settings.market_price, clock=clock,
                                  spawn=lambda target, *args: None)
        return InventoryDiscardPlugin(
            game, settings, catalog, source, surface,
            world_provider=lambda: world,
            settings_path=tmp_path / "settings.json",
            clock=clock,
            price_cache=prices,
        )
    return make


def run_frames(plugin, clock, seconds=20.0, step=0.01):
    """Tick the plugin until its run ends or the time runs out."""
    end = clock() + seconds
    while plugin.is_running() and clock() < end:
        plugin.tick()
        clock.advance(step)
