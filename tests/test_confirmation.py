"""Tests for confirmation.py — discard prompt recognition."""

import logging

import pytest

from conftest import FakeSurface
from confirmation import DiscardPromptMatcher, NullConfirmationSurface


@pytest.fixture
def matcher(game):
    return DiscardPromptMatcher.for_game(game)


class TestDiscardPromptMatcher:

    @pytest.mark.parametrize("text", [
        "Discard Copper Ore?",
        "Discard the collectable Rarefied Copper Ore?",
        "Kupfererz wegwerfen?",
        "Jeter Minerai de cuivre ?",
        "銅鉱を捨てます。よろしいですか？",
        "  Discard Copper Ore?\n",
    ])
    def test_matches(self, matcher, text):
        assert matcher.matches(text)

    @pytest.mark.parametrize("text", ["", "Teleport to Limsa Lominsa?", "Discard"])
    def test_rejects(self, matcher, text):
        assert not matcher.matches(text)

    def test_locale_subset(self, game):
        matcher = DiscardPromptMatcher.for_game(game, locales=["de"])
        assert matcher.matches("Kupfererz wegwerfen?")
        assert not matcher.matches("Discard Copper Ore?")

    def test_hidden_surface(self, matcher):
        surface = FakeSurface("Discard Copper Ore?")
        assert not matcher.find_discard_prompt(surface)
        assert not matcher.find_discard_prompt(NullConfirmationSurface())

    def test_visible_surface(self, matcher):
        surface = FakeSurface("Discard Copper Ore?")
        surface.visible = True
        assert matcher.find_discard_prompt(surface)

    def test_prompt_logged_once_per_appearance(self, matcher, caplog):
        caplog.set_level(logging.INFO)
        surface = FakeSurface("Teleport to Limsa Lominsa?")
        surface.visible = True
        for _ in range(150):
            assert not matcher.find_discard_prompt(surface)

        def logged():
            return sum("YesNo prompt" in r.getMessage() for r in caplog.records)

        assert logged() == 1
        surface.visible = False
        matcher.find_discard_prompt(surface)
        surface.visible = True
        matcher.find_discard_prompt(surface)
        assert logged() == 2
