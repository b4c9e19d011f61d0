"""Game-state models exchanged with the remote application."""

from .game_state import (
    BattleRecord,
    BattleResult,
    Guild,
    PlayerAchievement,
    PlayerState,
)


__all__ = [
    "BattleRecord",
    "BattleResult",
    "Guild",
    "PlayerAchievement",
    "PlayerState",
]
