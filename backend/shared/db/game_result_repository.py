"""SQLite-backed game result repository."""

from __future__ import annotations

import asyncio
import sqlite3
from typing import TYPE_CHECKING

import structlog

from shared.dal.game_result_repository import GameResultRepository, InsertOutcome
from shared.dal.models import GameRecord, GameStats, LeaderboardEntry

if TYPE_CHECKING:
    from collections.abc import Sequence

    from shared.db.connection import Database

logger = structlog.get_logger()

_INSERT_SQL = (
    "INSERT INTO game_results "
    "(session_id, user_id, difficulty, attempts, time_taken, completed, score, status, created_at, data) "
    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
)

_STATS_SQL = (
    "SELECT "
    "  COUNT(*), "
    "  COALESCE(SUM(completed), 0), "
    "  ROUND(AVG(CASE WHEN completed = 1 THEN attempts END), 1), "
    "  MIN(CASE WHEN completed = 1 THEN attempts END), "
    "  ROUND(AVG(time_taken), 1) "
    "FROM game_results"
)


def _row_params(record: GameRecord) -> tuple:
    return (
        record.session_id,
        record.user_id,
        record.difficulty,
        record.attempts,
        record.time_taken,
        int(record.completed),
        record.score,
        record.status.value,
        record.created_at.isoformat(),
        record.model_dump_json(),
    )


class SqliteGameResultRepository(GameResultRepository):
    """SQLite implementation of GameResultRepository.

    Stores the full record as JSON next to the columns used by stats and
    leaderboard queries. session_id is the primary key, so a second insert of
    the same session is reported as a duplicate rather than stored twice.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def insert_result(self, record: GameRecord) -> InsertOutcome:
        async with self._lock:
            conn = self._db.connection
            try:
                conn.execute(_INSERT_SQL, _row_params(record))
                conn.commit()
            except sqlite3.IntegrityError:
                conn.rollback()
                logger.info("game result already stored, ignoring duplicate", session_id=record.session_id)
                return InsertOutcome.DUPLICATE
        return InsertOutcome.CREATED

    async def upsert_results(self, records: Sequence[GameRecord]) -> int:
        """Insert all records in one transaction, skipping session_ids already present."""
        inserted = 0
        async with self._lock:
            conn = self._db.connection
            try:
                for record in records:
                    cursor = conn.execute(f"{_INSERT_SQL} ON CONFLICT(session_id) DO NOTHING", _row_params(record))
                    inserted += cursor.rowcount
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        if inserted < len(records):
            logger.info("skipped duplicate game results", requested=len(records), inserted=inserted)
        return inserted

    async def get_result(self, session_id: str) -> GameRecord | None:
        row = self._db.connection.execute(
            "SELECT data FROM game_results WHERE session_id = ?",
            (session_id,),
        ).fetchone()
        if row is None:
            return None
        return GameRecord.model_validate_json(row[0])

    async def count_results(self) -> int:
        row = self._db.connection.execute("SELECT COUNT(*) FROM game_results").fetchone()
        return row[0]

    async def get_stats(self, user_id: str | None = None) -> GameStats:
        if user_id is None:
            row = self._db.connection.execute(_STATS_SQL).fetchone()
        else:
            row = self._db.connection.execute(f"{_STATS_SQL} WHERE user_id = ?", (user_id,)).fetchone()
        total_games, total_wins, avg_guesses, best_score, avg_duration = row
        win_rate = round(total_wins / total_games * 100) if total_games else 0
        return GameStats(
            total_games=total_games,
            total_wins=total_wins,
            avg_guesses=avg_guesses,
            best_score=best_score,
            avg_duration=avg_duration,
            win_rate=win_rate,
        )

    async def get_leaderboard(self, limit: int = 10) -> list[LeaderboardEntry]:
        rows = self._db.connection.execute(
            "SELECT difficulty, attempts, time_taken, score, created_at, "
            "  CASE WHEN user_id IS NOT NULL THEN 'User' ELSE 'Guest' END "
            "FROM game_results "
            "WHERE completed = 1 "
            "ORDER BY attempts ASC, time_taken ASC "
            "LIMIT ?",
            (limit,),
        ).fetchall()
        return [
            LeaderboardEntry(
                difficulty=difficulty,
                attempts=attempts,
                time_taken=time_taken,
                score=score,
                created_at=created_at,
                player_type=player_type,
            )
            for difficulty, attempts, time_taken, score, created_at, player_type in rows
        ]
