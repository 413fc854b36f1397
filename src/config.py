"""
IDM (Inventory Discard Manager) - Configuration
All tunable constants in one place.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
load_dotenv()

APP_NAME = "InventoryDiscardManager"
APP_VERSION = "1.0.0"

# ─────────────────────────────────────────────
# Paths
# ─────────────────────────────────────────────
SETTINGS_DIR = Path(
    os.environ.get("IDM_SETTINGS_DIR", Path(os.path.expanduser("~")) / ".inventory-discard-manager")
)
SETTINGS_FILE = SETTINGS_DIR / "settings.json"
LOG_FILE = SETTINGS_DIR / "discard.log"

# Static item data exported from the game tables (see item_catalog.py)
ITEM_CATALOG_FILE = SETTINGS_DIR / "items.json"

# ─────────────────────────────────────────────
# Discard Sequencer
# ─────────────────────────────────────────────
# How long to wait for the game to resolve a single discard (seconds).
# If the slot still holds the item after this, the run fails.
DISCARD_GRACE_PERIOD = 15.0

# Pause after issuing the discard / accepting the prompt so the game
# can process the action before we look again.
DISCARD_SETTLE_DELAY = 0.02

# Re-poll interval while the Yes/No prompt has not rendered yet
CONFIRM_POLL_INTERVAL = 0.1

# Re-check interval after accepting, while waiting for the server
CONTINUE_POLL_INTERVAL = 0.02

DONE_MESSAGE = "Done discarding."
FAILED_MESSAGE = "Discarding probably failed due to an error."
NOTHING_TO_DISCARD_MESSAGE = "Nothing to discard."

# ─────────────────────────────────────────────
# Market Prices (Universalis)
# ─────────────────────────────────────────────
MARKET_API_BASE = "https://universalis.app/api/v2"
MARKET_USER_AGENT = f"{APP_NAME}/{APP_VERSION}"

# Universalis asks clients to stay well under their rate limit;
# one request per 500ms across the whole process.
MARKET_MIN_REQUEST_INTERVAL = 0.5

# Universalis recommends generous timeouts
MARKET_REQUEST_TIMEOUT = 30

# Listings per response (entries=0 skips sale history)
MARKET_LISTING_COUNT = 5
MARKET_STATS_WITHIN_MS = 7200000

MARKET_MAX_CONCURRENT_FETCHES = 5
MARKET_FETCH_STUCK_TIMEOUT = 30.0       # seconds before an in-flight fetch is evicted
MARKET_CACHE_TTL_MINUTES = 5            # default, user-configurable 1..60
MARKET_FAILURE_BACKOFF = 60.0           # don't retry a failed item for 1 minute
MARKET_RATE_LIMIT_BACKOFF = 300.0       # 5 minutes after an explicit 429

# Item id heuristics for skipping obviously unmarketable ids
MARKET_MIN_MARKETABLE_ID = 20
MARKET_MAX_MARKETABLE_ID = 50000

# ─────────────────────────────────────────────
# Local API (IPC + commands)
# ─────────────────────────────────────────────
SERVER_HOST = "127.0.0.1"
SERVER_PORT = int(os.environ.get("IDM_SERVER_PORT", "8460"))
