"""
commands.py — Chat command vocabulary.

  /idm                  toggle the manager window
  /idm config           open the manager on the settings tab
  /idm discard          discard everything selected
  /idm stop             abort the current run
  /idm refresh          re-read the inventory and drop cached prices
  /discard              toggle the discard preview
  /discardconfig        same as /idm config
  /inventorybrowser     toggle the inventory browser
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Tuple

from plugin import TAB_DISCARD, TAB_INVENTORY, TAB_SETTINGS, InventoryDiscardPlugin

logger = logging.getLogger(__name__)


class UnknownCommandError(ValueError):
    pass


@dataclass
class CommandResult:
    command: str
    action: str
    message: str = ""
    ok: bool = True


# command → help text, shown in the host's command list
COMMAND_HELP: Dict[str, str] = {
    "/idm": "Open the Inventory Discard Manager (/idm config for settings)",
    "/discard": "Show what will be discarded with your current configuration",
    "/discardconfig": "Configure which items to automatically discard",
    "/inventorybrowser": "Open the inventory browser to select items for discard",
}


class CommandHandler:
    def __init__(self, plugin: InventoryDiscardPlugin):
        self.plugin = plugin
        self._subcommands: Dict[str, Callable[[], Tuple[str, str]]] = {
            "": lambda: self._toggle_window(TAB_INVENTORY),
            "config": lambda: self._open_window(TAB_SETTINGS),
            "discard": self._discard,
            "stop": self._stop,
            "refresh": self._refresh,
        }

    def handle(self, text: str) -> CommandResult:
        """Run one command line, e.g. "/idm config". Raises UnknownCommandError."""
        parts = text.strip().split(maxsplit=1)
        if not parts:
            raise UnknownCommandError("empty command")
        command = parts[0].lower()
        args = parts[1].strip().lower() if len(parts) > 1 else ""

        if command == "/idm":
            handler = self._subcommands.get(args)
            if handler is None:
                raise UnknownCommandError(f"unknown /idm subcommand: {args}")
            action, message = handler()
        elif command == "/discard":
            action, message = self._toggle_window(TAB_DISCARD)
        elif command == "/discardconfig":
            action, message = self._open_window(TAB_SETTINGS)
        elif command == "/inventorybrowser":
            action, message = self._toggle_window(TAB_INVENTORY)
        else:
            raise UnknownCommandError(f"unknown command: {command}")

        logger.debug(f"Command {text.strip()!r} → {action}")
        return CommandResult(command=command, action=action, message=message)

    # ─── Handlers ─────────────────────────────────

    def _toggle_window(self, tab: str) -> Tuple[str, str]:
        window = self.plugin.window
        if window.is_open and window.tab == tab:
            window.is_open = False
            return "close", ""
        window.is_open = True
        window.tab = tab
        self.plugin.refresh_inventory()
        return "open", tab

    def _open_window(self, tab: str) -> Tuple[str, str]:
        window = self.plugin.window
        window.is_open = True
        window.tab = tab
        return "open", tab

    def _discard(self) -> Tuple[str, str]:
        if not self.plugin.start_discarding():
            return "discard", "not started"
        return "discard", "started"

    def _stop(self) -> Tuple[str, str]:
        self.plugin.abort_discarding()
        return "stop", ""

    def _refresh(self) -> Tuple[str, str]:
        groups = self.plugin.refresh_inventory(clear_prices=True)
        return "refresh", f"{len(groups)} categories"
