"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.game_result_repository import GameResultRepository, InsertOutcome
from shared.dal.models import (
    DeviceInfo,
    GameRecord,
    GameStats,
    GameStatus,
    GuessRecord,
    LeaderboardEntry,
    QueuedRecord,
    SyncReport,
)

__all__ = [
    "DeviceInfo",
    "GameRecord",
    "GameResultRepository",
    "GameStats",
    "GameStatus",
    "GuessRecord",
    "InsertOutcome",
    "LeaderboardEntry",
    "QueuedRecord",
    "SyncReport",
]
