"""Injected game state."""

from .game_state import GameState

__all__ = ["GameState"]
