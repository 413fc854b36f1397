"""
confirmation.py — The game's Yes/No prompt, as seen by the discard sequencer.

The prompt is shared with everything else in the game (teleports, trades,
other plugins), so it only counts as a discard confirmation when its text
matches one of the locale's discard patterns.
"""

import re
import logging
from typing import Dict, Iterable, List, Optional

from core.game_config import GameConfig

logger = logging.getLogger(__name__)


class ConfirmationSurface:
    """Host-side access to the Yes/No prompt. Implemented by the game adapter."""

    def is_visible(self) -> bool:
        raise NotImplementedError

    def get_prompt_text(self) -> str:
        raise NotImplementedError

    def accept(self):
        """Press "Yes"."""
        raise NotImplementedError


class NullConfirmationSurface(ConfirmationSurface):
    """A prompt that never appears (dry runs, hosts that skip confirmation)."""

    def is_visible(self) -> bool:
        return False

    def get_prompt_text(self) -> str:
        return ""

    def accept(self):
        pass


class DiscardPromptMatcher:
    """Recognizes discard / discard-collectable prompts in one or more locales."""

    def __init__(self, patterns: Dict[str, List[str]], locales: Optional[Iterable[str]] = None):
        wanted = set(locales) if locales is not None else set(patterns)
        self._patterns = [
            re.compile(p)
            for locale, locale_patterns in sorted(patterns.items())
            if locale in wanted
            for p in locale_patterns
        ]
        self._last_text: Optional[str] = None
        if not self._patterns:
            logger.warning("DiscardPromptMatcher: no prompt patterns loaded; prompts will never match")

    @classmethod
    def for_game(cls, game: GameConfig, locales: Optional[Iterable[str]] = None) -> "DiscardPromptMatcher":
        return cls(game.discard_prompt_patterns, locales)

    def matches(self, text: str) -> bool:
        if not text:
            return False
        text = text.strip()
        return any(p.match(text) for p in self._patterns)

    def find_discard_prompt(self, surface: ConfirmationSurface) -> bool:
        """True when the surface is showing a discard confirmation right now."""
        if not surface.is_visible():
            self._last_text = None
            return False
        text = surface.get_prompt_text()
        # Polled every frame; only report a prompt once per appearance
        if text != self._last_text:
            logger.info(f"YesNo prompt: {text}")
            self._last_text = text
        return self.matches(text)
