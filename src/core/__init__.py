"""
IDM Core — game-agnostic configuration.

Usage:
    from core import GameConfig
    from games.ffxiv import create_ffxiv_config

    game = create_ffxiv_config()
"""

from core.game_config import GameConfig

__all__ = [
    "GameConfig",
]
