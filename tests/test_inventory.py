"""Tests for item_catalog.py and inventory.py — loading, scanning and picking targets."""

import json

import pytest

from conftest import make_slot, make_source
from inventory import InventoryScanner, ItemFilter, StaticInventorySource
from item_catalog import ItemCatalog, ItemRecord
from settings import ArmourySettings


# ── Item catalog ─────────────────────────────────────────

class TestItemCatalog:

    def test_from_dict(self):
        rec = ItemRecord.from_dict({"item_id": 5111, "name": "Copper Ore",
                                    "category_id": 48, "category_name": "Stone"})
        assert rec.item_id == 5111
        assert rec.category_name == "Stone"
        assert rec.is_unique is False

    @pytest.mark.parametrize("raw", [{}, {"item_id": 0}, {"item_id": "abc"}])
    def test_from_dict_rejects(self, raw):
        assert ItemRecord.from_dict(raw) is None

    def test_load(self, tmp_path):
        path = tmp_path / "items.json"
        path.write_text(json.dumps([
            {"item_id": 5111, "name": "Copper Ore", "category_id": 48},
            {"item_id": -3, "name": "Broken"},
            "garbage",
        ]), encoding="utf-8")
        cat = ItemCatalog.load(path)
        assert len(cat) == 1
        assert 5111 in cat
        assert cat.get(5111).name == "Copper Ore"

    def test_load_missing(self, tmp_path):
        assert len(ItemCatalog.load(tmp_path / "nope.json")) == 0

    def test_load_not_a_list(self, tmp_path):
        path = tmp_path / "items.json"
        path.write_text(json.dumps({"item_id": 1}), encoding="utf-8")
        assert len(ItemCatalog.load(path)) == 0


# ── Static source ────────────────────────────────────────

class TestStaticInventorySource:

    def test_enumerate_sorted_and_filtered(self):
        src = make_source((1, 4, 5111), (0, 9, 5106), (0, 2, 4850), (3200, 0, 3000))
        slots = src.enumerate_slots([0, 1])
        assert [(s.container, s.slot) for s in slots] == [(0, 2), (0, 9), (1, 4)]

    def test_dispose_records_only(self):
        src = make_source((0, 0, 5111))
        src.dispose(0, 0)
        assert src.disposed == [(0, 0)]
        assert src.item_at(0, 0) is not None

    def test_remove_on_dispose(self):
        src = make_source((0, 0, 5111), remove_on_dispose=True)
        src.dispose(0, 0)
        assert src.item_at(0, 0) is None

    def test_from_json(self, tmp_path):
        path = tmp_path / "inv.json"
        path.write_text(json.dumps([
            {"container": 0, "slot": 3, "item_id": 5111, "quantity": 12},
            {"container": 1, "slot": 0, "item_id": 4850},
        ]), encoding="utf-8")
        src = StaticInventorySource.from_json(path)
        assert src.item_at(0, 3).quantity == 12
        assert src.item_at(1, 0).quantity == 1


# ── Scanner ──────────────────────────────────────────────

@pytest.fixture
def scanner_factory(catalog, list_manager, game):
    def make(source, armoury=None):
        return InventoryScanner(source, catalog, list_manager, game, armoury)
    return make


class TestInventoryScanner:

    def test_main_inventory_only_by_default(self, scanner_factory):
        scanner = scanner_factory(make_source((0, 0, 5111), (3500, 0, 3000)))
        assert [s.item_id for s in scanner.get_all_items()] == [5111]

    def test_armoury_groups(self, scanner_factory, game):
        armoury = ArmourySettings(discard_from_armoury_chest=True, check_main_hand_off_hand=True)
        scanner = scanner_factory(make_source(), armoury)
        assert set(scanner.containers()) == set(game.inventory_containers) | set(game.armoury_main_off_hand)

    def test_armoury_flags_need_master_switch(self, scanner_factory):
        armoury = ArmourySettings(check_main_hand_off_hand=True, check_left_side_gear=True)
        assert scanner_factory(make_source(), armoury).armoury_containers() == []

    def test_unavailable_source(self, scanner_factory):
        scanner = scanner_factory(make_source((0, 0, 5111), available=False))
        assert scanner.get_all_items() == []
        assert scanner.get_next_item_to_discard(ItemFilter.of([5111])) is None

    def test_skips_empty_slots(self, scanner_factory):
        scanner = scanner_factory(make_source((0, 0, 0), (0, 1, 5111)))
        assert len(scanner.get_all_items()) == 1

    def test_next_item_respects_filter(self, scanner_factory):
        scanner = scanner_factory(make_source((0, 0, 5111), (0, 1, 4850)))
        assert scanner.get_next_item_to_discard(ItemFilter.of([4850])) == make_slot(0, 1, 4850)

    def test_next_item_respects_eligibility(self, scanner_factory):
        # 2820 is excluded, 2 is a crystal
        scanner = scanner_factory(make_source((0, 0, 2820), (0, 1, 2), (0, 2, 5106)))
        nxt = scanner.get_next_item_to_discard(ItemFilter.of([2820, 2, 5106]))
        assert nxt.item_id == 5106

    def test_slot_at(self, scanner_factory):
        scanner = scanner_factory(make_source((0, 0, 0), (0, 1, 5111), (1, 1, 4850)))
        assert scanner.slot_at(0, 1) == make_slot(0, 1, 5111)
        assert scanner.slot_at(0, 0) is None
        assert scanner.slot_at(0, 7) is None

    def test_slot_at_unavailable(self, scanner_factory):
        scanner = scanner_factory(make_source((0, 1, 5111), available=False))
        assert scanner.slot_at(0, 1) is None

    def test_next_item_none(self, scanner_factory):
        scanner = scanner_factory(make_source((0, 0, 5111)))
        assert scanner.get_next_item_to_discard(ItemFilter.of([4850])) is None

    def test_armoury_item_level_cap(self, scanner_factory):
        armoury = ArmourySettings(discard_from_armoury_chest=True, check_main_hand_off_hand=True,
                                  maximum_gear_item_level=100)
        scanner = scanner_factory(make_source((3500, 0, 3001), (3500, 1, 3000)), armoury)
        nxt = scanner.get_next_item_to_discard(ItemFilter.of([3000, 3001]))
        assert nxt == make_slot(3500, 1, 3000)

    def test_item_level_cap_only_applies_to_armoury(self, scanner_factory):
        armoury = ArmourySettings(discard_from_armoury_chest=True, check_main_hand_off_hand=True,
                                  maximum_gear_item_level=100)
        scanner = scanner_factory(make_source((0, 5, 3001)), armoury)
        assert scanner.get_next_item_to_discard(ItemFilter.of([3001])) == make_slot(0, 5, 3001)


class TestItemFilter:

    def test_of(self):
        f = ItemFilter.of(["5111", 4850])
        assert 5111 in f and 4850 in f
        assert len(f) == 2

    def test_immutable(self):
        f = ItemFilter.of([1])
        with pytest.raises(Exception):
            f.item_ids = frozenset()
