"""Tests for commands.py — chat command routing."""

import pytest

from commands import COMMAND_HELP, CommandHandler, UnknownCommandError
from plugin import TAB_DISCARD, TAB_INVENTORY, TAB_SETTINGS


@pytest.fixture
def plugin(plugin_factory):
    return plugin_factory((0, 0, 5111, 10), (0, 1, 4850))


@pytest.fixture
def handler(plugin):
    return CommandHandler(plugin)


class TestWindowCommands:

    def test_idm_toggles_inventory(self, handler, plugin):
        result = handler.handle("/idm")
        assert result.action == "open"
        assert plugin.window.is_open
        assert plugin.window.tab == TAB_INVENTORY
        # Opening reads the inventory
        assert plugin.groups

        assert handler.handle("/idm").action == "close"
        assert not plugin.window.is_open

    def test_idm_config(self, handler, plugin):
        result = handler.handle("/idm config")
        assert result.message == TAB_SETTINGS
        assert plugin.window.tab == TAB_SETTINGS
        # Opening settings again keeps it open
        handler.handle("/discardconfig")
        assert plugin.window.is_open

    def test_discard_preview(self, handler, plugin):
        handler.handle("/discard")
        assert plugin.window.tab == TAB_DISCARD

    def test_switching_tabs_keeps_window_open(self, handler, plugin):
        handler.handle("/discard")
        handler.handle("/inventorybrowser")
        assert plugin.window.is_open
        assert plugin.window.tab == TAB_INVENTORY

    def test_case_and_whitespace(self, handler, plugin):
        handler.handle("  /IDM   Config ")
        assert plugin.window.tab == TAB_SETTINGS


class TestRunCommands:

    def test_discard_and_stop(self, handler, plugin):
        plugin.select_item(5111)
        result = handler.handle("/idm discard")
        assert result.message == "started"
        assert plugin.is_running()

        handler.handle("/idm stop")
        assert not plugin.is_running()

    def test_discard_unavailable(self, plugin_factory):
        handler = CommandHandler(plugin_factory((0, 0, 5111), available=False))
        assert handler.handle("/idm discard").message == "not started"

    def test_refresh_drops_prices(self, handler, plugin):
        plugin.refresh_inventory()
        assert plugin.prices.in_flight_count() > 0
        result = handler.handle("/idm refresh")
        assert result.action == "refresh"
        # Cleared, then the rebuilt view queued fresh lookups
        assert plugin.prices.is_in_flight(5111)


class TestUnknown:

    @pytest.mark.parametrize("text", ["", "   ", "/idmx", "/idm bogus", "/say hello"])
    def test_rejected(self, handler, text):
        with pytest.raises(UnknownCommandError):
            handler.handle(text)

    def test_help_lists_every_command(self):
        assert set(COMMAND_HELP) == {"/idm", "/discard", "/discardconfig", "/inventorybrowser"}
