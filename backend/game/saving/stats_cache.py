"""Best-effort local statistics: lifetime totals and the per-day session win rate.

Neither is authoritative; the server's /api/stats is. These only let the UI
show rough numbers without a round trip.
"""

from __future__ import annotations

import re
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog
from pydantic import BaseModel, ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.dal.models import GameRecord
    from shared.storage import KeyValueStorage

logger = structlog.get_logger()

GUEST_STATS_KEY = "lytic_guest_stats"

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class CachedStats(BaseModel):
    total_games: int = 0
    total_wins: int = 0
    total_score: int = 0
    last_played: int | None = None  # epoch ms


class _SessionCounts(BaseModel):
    games: int = 0
    wins: int = 0


def stats_key(user_id: str | None) -> str:
    if not user_id:
        return GUEST_STATS_KEY
    return f"lytic_stats_{_UNSAFE_KEY_CHARS.sub('_', user_id)[:100]}"


class LocalStatsCache:
    def __init__(self, storage: KeyValueStorage, clock: Callable[[], float] = time.time) -> None:
        self._storage = storage
        self._clock = clock

    def get(self, user_id: str | None = None) -> CachedStats:
        raw = self._storage.get(stats_key(user_id))
        if raw is None:
            return CachedStats()
        try:
            return CachedStats.model_validate(raw)
        except ValidationError:
            logger.warning("resetting unreadable stats cache", user_id=user_id)
            return CachedStats()

    def record(self, record: GameRecord) -> CachedStats:
        """Fold one saved game into the cached totals of its owner."""
        stats = self.get(record.user_id)
        updated = CachedStats(
            total_games=stats.total_games + 1,
            total_wins=stats.total_wins + int(record.completed),
            total_score=stats.total_score + record.score,
            last_played=int(self._clock() * 1000),
        )
        try:
            self._storage.set(stats_key(record.user_id), updated.model_dump())
        except OSError:
            logger.exception("failed to update local stats cache", session_id=record.session_id)
            return stats
        return updated


class SessionTally:
    """Games and wins for the current day, kept in session-scoped storage."""

    def __init__(self, storage: KeyValueStorage, clock: Callable[[], float] = time.time) -> None:
        self._storage = storage
        self._clock = clock

    def _key(self) -> str:
        day = datetime.fromtimestamp(self._clock(), tz=UTC).date().isoformat()
        return f"lytic_session_{day}"

    def record_game(self, *, completed: bool) -> float:
        """Count one finished game and return the day's win rate as a percentage."""
        key = self._key()
        try:
            counts = _SessionCounts.model_validate(self._storage.get(key) or {})
        except ValidationError:
            counts = _SessionCounts()
        counts = _SessionCounts(games=counts.games + 1, wins=counts.wins + int(completed))
        self._storage.set(key, counts.model_dump())
        return counts.wins / counts.games * 100
