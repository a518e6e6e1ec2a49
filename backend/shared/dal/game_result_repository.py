"""Abstract interface for game result persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shared.dal.models import GameRecord, GameStats, LeaderboardEntry


class InsertOutcome(StrEnum):
    CREATED = "created"
    DUPLICATE = "duplicate"


class GameResultRepository(ABC):
    """Stores GameRecords keyed by session_id; a session is stored at most once."""

    @abstractmethod
    async def insert_result(self, record: GameRecord) -> InsertOutcome: ...

    @abstractmethod
    async def upsert_results(self, records: Sequence[GameRecord]) -> int:
        """Insert records, ignoring duplicates. Return how many rows were new."""

    @abstractmethod
    async def get_result(self, session_id: str) -> GameRecord | None: ...

    @abstractmethod
    async def count_results(self) -> int: ...

    @abstractmethod
    async def get_stats(self, user_id: str | None = None) -> GameStats: ...

    @abstractmethod
    async def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]: ...
