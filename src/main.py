"""
IDM (Inventory Discard Manager) - Main Application
Wires the game config, settings, item catalog and an inventory source into
the plugin, then serves the local API.

Without a live game adapter this runs against an inventory dump, which is
how discard selections are previewed and tested end to end.

Usage:
    python main.py --inventory dump.json                # Serve API over a dump
    python main.py --inventory dump.json --world Odin   # Enable market prices
    python main.py --inventory dump.json --discard      # Dry-run a discard and exit
    python main.py --debug                              # Verbose logging
"""

import sys
import os
import time
import logging
import argparse
from pathlib import Path

# Add src to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from config import (
    APP_NAME,
    APP_VERSION,
    ITEM_CATALOG_FILE,
    LOG_FILE,
    SERVER_HOST,
    SERVER_PORT,
    SETTINGS_FILE,
)
from confirmation import NullConfirmationSurface
from discard_sequencer import DiscardState
from games.ffxiv import create_ffxiv_config
from inventory import StaticInventorySource
from item_catalog import ItemCatalog
from plugin import InventoryDiscardPlugin
from settings import load_settings

logger = logging.getLogger("idm")


def setup_logging(debug: bool = False):
    """Configure logging.

    Console always shows INFO+ only (run progress, chat output, errors).
    File gets DEBUG when --debug is used (prompt polling, price fetches).
    """
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    console.setFormatter(logging.Formatter("%(asctime)s %(message)s", datefmt="%H:%M:%S"))

    file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    ))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.addHandler(console)
    root_logger.addHandler(file_handler)


def build_plugin(args) -> InventoryDiscardPlugin:
    game = create_ffxiv_config()
    settings_path = Path(args.settings)
    settings = load_settings(settings_path, default_blacklist=game.default_blacklist)
    catalog = ItemCatalog.load(Path(args.catalog))

    if args.inventory:
        source = StaticInventorySource.from_json(Path(args.inventory), remove_on_dispose=True)
        logger.info(f"Using inventory dump {args.inventory}")
    else:
        source = StaticInventorySource(available=False)
        logger.warning("No inventory source; runs will report nothing to discard")

    world = args.world or ""
    return InventoryDiscardPlugin(
        game, settings, catalog, source, NullConfirmationSurface(),
        world_provider=lambda: world,
        settings_path=settings_path,
    )


def run_once(plugin: InventoryDiscardPlugin, timeout: float = 60.0) -> int:
    """Discard the current selection, driving the frame loop inline."""
    plugin.refresh_inventory()
    preview = plugin.preview()
    for item in preview:
        logger.info(f"  will discard {item.quantity}x {item.name} ({item.item_id})")
    if not plugin.start_discarding():
        return 1

    deadline = time.monotonic() + timeout
    while plugin.is_running() and time.monotonic() < deadline:
        plugin.tick()
        time.sleep(0.01)
    if plugin.is_running():
        plugin.abort_discarding()
        logger.error("Discard run did not finish in time")
        return 1

    summary = plugin.sequencer.last_summary
    logger.info(f"{summary.dispatched} slots discarded: {summary.message}")
    return 0 if summary.state == DiscardState.DONE else 1


def main():
    parser = argparse.ArgumentParser(
        description=f"{APP_NAME} {APP_VERSION}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --inventory dump.json              # Serve the API over a dump
  python main.py --inventory dump.json --discard    # Dry-run discard and exit
        """
    )
    parser.add_argument(
        "--inventory", "-i",
        help="JSON inventory dump: [{container, slot, item_id, quantity}, ...]"
    )
    parser.add_argument(
        "--catalog",
        default=str(ITEM_CATALOG_FILE),
        help=f"Item catalog export (default: {ITEM_CATALOG_FILE})"
    )
    parser.add_argument(
        "--settings",
        default=str(SETTINGS_FILE),
        help=f"Settings file (default: {SETTINGS_FILE})"
    )
    parser.add_argument(
        "--world", "-w",
        help="Home world, for market prices"
    )
    parser.add_argument(
        "--port", "-p",
        type=int,
        default=SERVER_PORT,
        help=f"API port (default: {SERVER_PORT})"
    )
    parser.add_argument(
        "--discard",
        action="store_true",
        help="Discard the current selection once and exit instead of serving"
    )
    parser.add_argument(
        "--debug", "-d",
        action="store_true",
        help="Enable debug logging"
    )

    args = parser.parse_args()

    setup_logging(debug=args.debug)
    logger.info(f"{APP_NAME} {APP_VERSION} starting")

    plugin = build_plugin(args)

    if args.discard:
        sys.exit(run_once(plugin))

    import uvicorn
    from server import create_app

    logger.info(f"Starting API server on {SERVER_HOST}:{args.port}")
    uvicorn.run(create_app(plugin), host=SERVER_HOST, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
