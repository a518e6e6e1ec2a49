"""SQLite database layer: connection management and repository implementations."""

from shared.db.connection import Database
from shared.db.game_result_repository import SqliteGameResultRepository

__all__ = [
    "Database",
    "SqliteGameResultRepository",
]
