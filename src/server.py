"""
server.py — FastAPI surface for the discard manager.

Other plugins query the selection and run state over HTTP; the command
endpoint accepts the same chat commands the host would route to us.

Endpoints:
  GET  /api/ipc/items-to-discard   → ids currently selected for discarding
  GET  /api/ipc/is-running         → whether a discard run is active
  POST /api/command                → run a chat command ("/idm config", ...)
  GET  /api/status                 → sequencer + window state
  GET  /api/inventory              → categorized inventory with prices
  POST /api/inventory/refresh      → re-read inventory (optionally drop prices)
  POST /api/selection              → select / deselect one item
  POST /api/selection/category     → select / deselect a whole category
  POST /api/exclusions             → add / remove an exclusion list entry
  GET  /api/preview                → what the next run would discard
  POST /api/discard                → start a run
  POST /api/discard/abort          → abort the active run
  GET  /api/messages               → recent chat output
  GET  /api/settings               → persisted settings
  POST /api/settings               → update settings sections
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from commands import COMMAND_HELP, CommandHandler, UnknownCommandError
from plugin import InventoryDiscardPlugin
from snapshot import InventoryItemInfo

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------
class CommandRequest(BaseModel):
    text: str


class RefreshRequest(BaseModel):
    clear_prices: bool = False


class SelectionRequest(BaseModel):
    item_id: int
    selected: bool = True


class CategorySelectionRequest(BaseModel):
    category_id: int
    selected: bool = True


class ExclusionRequest(BaseModel):
    item_id: int
    excluded: bool = True


class DiscardRequest(BaseModel):
    item_ids: Optional[List[int]] = None


class SettingsRequest(BaseModel):
    armoury: Optional[dict] = None
    context_menu: Optional[dict] = None
    preview: Optional[dict] = None
    inventory_browser: Optional[dict] = None
    market_price: Optional[dict] = None


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def _item_json(item: InventoryItemInfo, selection) -> dict:
    cheapest = item.market_data.cheapest_listing() if item.market_data else None
    return {
        "item_id": item.item_id,
        "name": item.name,
        "icon_id": item.icon_id,
        "quantity": item.quantity,
        "item_level": item.item_level,
        "can_be_discarded": item.can_be_discarded,
        "selected": item.item_id in selection,
        "market_price": item.market_price,
        "market_price_is_hq": item.market_price_is_hq,
        "market_price_loading": item.market_price_loading,
        "cheapest_world": cheapest.world_name if cheapest else None,
    }


def create_app(plugin: InventoryDiscardPlugin, run_frame_loop: bool = True) -> FastAPI:
    """Build the API around an already-wired plugin."""
    commands = CommandHandler(plugin)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if run_frame_loop:
            plugin.start()
        await asyncio.to_thread(plugin.refresh_inventory)
        logger.info("Discard manager API ready")
        yield
        plugin.stop()

    app = FastAPI(title="Inventory Discard Manager", lifespan=lifespan)

    # -----------------------------------------------------------------------
    # Inter-plugin queries
    # -----------------------------------------------------------------------
    @app.get("/api/ipc/items-to-discard")
    async def ipc_items_to_discard():
        return {"items": sorted(plugin.get_items_to_discard())}

    @app.get("/api/ipc/is-running")
    async def ipc_is_running():
        return {"is_running": plugin.is_running()}

    # -----------------------------------------------------------------------
    # Commands
    # -----------------------------------------------------------------------
    @app.get("/api/commands")
    async def list_commands():
        return COMMAND_HELP

    @app.post("/api/command")
    async def run_command(req: CommandRequest):
        try:
            result = commands.handle(req.text)
        except UnknownCommandError as e:
            return JSONResponse(status_code=400, content={"error": str(e)})
        return {
            "command": result.command,
            "action": result.action,
            "message": result.message,
            "ok": result.ok,
        }

    # -----------------------------------------------------------------------
    # State
    # -----------------------------------------------------------------------
    @app.get("/api/status")
    async def get_status():
        return plugin.status()

    @app.get("/api/messages")
    async def get_messages():
        return [
            {"text": m.text, "is_error": m.is_error, "timestamp": m.timestamp}
            for m in plugin.messages
        ]

    # -----------------------------------------------------------------------
    # Inventory + selection
    # -----------------------------------------------------------------------
    @app.get("/api/inventory")
    async def get_inventory():
        plugin.prefetch_prices()
        selection = plugin.settings.items_to_discard
        return [
            {
                "category_id": g.category_id,
                "category_name": g.category_name,
                "total_items": g.total_items,
                "total_quantity": g.total_quantity,
                "selection": plugin.category_state(g.category_id),
                "items": [_item_json(i, selection) for i in g.items],
            }
            for g in plugin.groups
        ]

    @app.post("/api/inventory/refresh")
    async def refresh_inventory(req: RefreshRequest = RefreshRequest()):
        groups = plugin.refresh_inventory(clear_prices=req.clear_prices)
        return {"categories": len(groups)}

    @app.post("/api/selection")
    async def select_item(req: SelectionRequest):
        if not plugin.select_item(req.item_id, req.selected):
            return JSONResponse(
                status_code=400,
                content={"error": f"Item {req.item_id} can't be discarded"},
            )
        return {"item_id": req.item_id, "selected": req.selected}

    @app.post("/api/selection/category")
    async def select_category(req: CategorySelectionRequest):
        count = plugin.select_category(req.category_id, req.selected)
        return {
            "category_id": req.category_id,
            "changed": count,
            "selection": plugin.category_state(req.category_id),
        }

    @app.post("/api/exclusions")
    async def set_exclusion(req: ExclusionRequest):
        changed = plugin.set_excluded(req.item_id, req.excluded)
        return {
            "item_id": req.item_id,
            "excluded": plugin.list_manager.is_blacklisted(req.item_id),
            "pinned": plugin.list_manager.is_pinned(req.item_id),
            "changed": changed,
        }

    @app.get("/api/preview")
    async def get_preview():
        selection = plugin.settings.items_to_discard
        items = plugin.preview()
        return {
            "items": [_item_json(i, selection) for i in items],
            "total_value": plugin.preview_value(),
        }

    # -----------------------------------------------------------------------
    # Discarding
    # -----------------------------------------------------------------------
    @app.post("/api/discard")
    async def start_discard(req: DiscardRequest = DiscardRequest()):
        started = plugin.start_discarding(req.item_ids)
        if not started:
            return JSONResponse(status_code=409, content={"error": "Inventory is not available"})
        return {"status": "started"}

    @app.post("/api/discard/abort")
    async def abort_discard():
        plugin.abort_discarding()
        return {"status": "aborted"}

    # -----------------------------------------------------------------------
    # Settings
    # -----------------------------------------------------------------------
    @app.get("/api/settings")
    async def get_settings():
        return plugin.settings.to_dict()

    @app.post("/api/settings")
    async def post_settings(req: SettingsRequest):
        sections = req.model_dump(exclude_none=True)
        plugin.update_settings(sections)
        return plugin.settings.to_dict()

    return app
