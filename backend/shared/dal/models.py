"""Persistence models shared by the game client and the API server.

GameRecord is the canonical unit of persistence and doubles as the JSON wire
format of every save channel: field names are the wire names.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any, Self

from pydantic import BaseModel, Field, computed_field, model_validator

MIN_DIFFICULTY = 4
MAX_DIFFICULTY = 7


class GameStatus(StrEnum):
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class GuessRecord(BaseModel, frozen=True):
    """One submitted guess, in turn order."""

    turn_number: int = Field(ge=1)
    guess_value: str = Field(pattern=r"^\d+$", max_length=MAX_DIFFICULTY)
    match_count: int = Field(ge=0)
    timestamp_ms: int = Field(ge=0)
    elapsed_since_start_ms: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_match_count(self) -> Self:
        if self.match_count > len(self.guess_value):
            raise ValueError(f"match_count {self.match_count} exceeds code length {len(self.guess_value)}")
        return self


class DeviceInfo(BaseModel, frozen=True):
    """Snapshot of the playing device, captured once at session start."""

    user_agent: str = ""
    language: str | None = None
    timezone: str | None = None
    screen_width: int | None = None
    screen_height: int | None = None
    captured_at: datetime


class GameRecord(BaseModel, frozen=True):
    """Terminal representation of a won or abandoned session.

    Exactly one of completed/abandoned is set; status is always derived from
    completed, so a caller-supplied status on input is ignored.
    """

    session_id: str = Field(min_length=1, max_length=100)
    difficulty: int = Field(ge=MIN_DIFFICULTY, le=MAX_DIFFICULTY)
    attempts: int = Field(ge=0)
    time_taken: int = Field(ge=0)
    completed: bool
    score: int = Field(default=0, ge=0)
    secret_code: str | None = None
    final_guess: str | None = None
    user_id: str | None = None
    is_guest: bool = True
    game_started_at: datetime
    game_ended_at: datetime | None = None
    browser_language: str | None = None
    timezone: str | None = None
    abandoned: bool = False
    abandon_reason: str | None = None
    device_info: dict[str, Any] | None = None
    guess_history: list[GuessRecord] = Field(default_factory=list)
    total_game_time: int | None = None
    average_time_per_guess: float | None = None
    win_rate_this_session: float | None = None
    created_at: datetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> GameStatus:
        return GameStatus.COMPLETED if self.completed else GameStatus.ABANDONED

    @model_validator(mode="after")
    def _check_outcome(self) -> Self:
        if self.completed == self.abandoned:
            raise ValueError("a persisted game is either completed or abandoned, never both or neither")
        if not self.completed:
            if self.score != 0:
                raise ValueError("abandoned games score 0")
            if self.secret_code is not None or self.final_guess is not None:
                raise ValueError("secret_code and final_guess are only recorded for completed games")
        if self.abandon_reason is not None and not self.abandoned:
            raise ValueError("abandon_reason is only recorded for abandoned games")
        return self

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class QueuedRecord(GameRecord, frozen=True):
    """A GameRecord waiting in the local durable queue."""

    backup_timestamp: int = Field(ge=0)  # epoch milliseconds at enqueue time

    @classmethod
    def from_record(cls, record: GameRecord, backup_timestamp: int) -> Self:
        return cls.model_validate({**record.model_dump(), "backup_timestamp": backup_timestamp})

    def to_record(self) -> GameRecord:
        return GameRecord.model_validate(self.model_dump(exclude={"backup_timestamp"}))


class GameStats(BaseModel):
    total_games: int = 0
    total_wins: int = 0
    avg_guesses: float | None = None
    best_score: int | None = None  # fewest attempts among won games
    avg_duration: float | None = None
    win_rate: int = 0  # whole percent


class LeaderboardEntry(BaseModel):
    difficulty: int
    attempts: int
    time_taken: int
    score: int
    created_at: datetime
    player_type: str  # "User" | "Guest"


class SyncReport(BaseModel):
    synced_count: int = Field(ge=0)
    requested_count: int = Field(ge=0)
