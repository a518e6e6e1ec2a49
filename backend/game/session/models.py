import locale
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from shared.dal.models import DeviceInfo, GuessRecord


class Outcome(StrEnum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class AbandonReason(StrEnum):
    PAGE_UNLOAD = "page_unload"
    VISIBILITY_HIDDEN = "visibility_hidden"
    NEW_GAME = "new_game"
    USER_QUIT = "user_quit"


def new_session_id(now: float | None = None) -> str:
    """Opaque session token: creation time in ms plus a random suffix."""
    now_ms = int((time.time() if now is None else now) * 1000)
    return f"session_{now_ms}_{uuid4().hex[:9]}"


def capture_device_info(
    user_agent: str,
    *,
    screen_width: int | None = None,
    screen_height: int | None = None,
    now: float | None = None,
) -> DeviceInfo:
    """Snapshot the host environment the game is being played on."""
    language, _encoding = locale.getlocale()
    captured_at = datetime.fromtimestamp(time.time() if now is None else now, tz=UTC)
    return DeviceInfo(
        user_agent=user_agent,
        language=language.replace("_", "-") if language else None,
        timezone=datetime.now().astimezone().tzname(),
        screen_width=screen_width,
        screen_height=screen_height,
        captured_at=captured_at,
    )


@dataclass
class PlayerIdentity:
    """Who is playing. Authentication is handled elsewhere; only the result lands here."""

    user_id: str | None = None
    guest_mode: bool = False

    @property
    def is_guest(self) -> bool:
        return self.guest_mode or self.user_id is None


@dataclass
class GameSession:
    """One play-through, owned by the SessionTracker until it terminates.

    Lifecycle:
    - start: id, secret, start time and device snapshot are fixed
    - guesses: appended in turn order, turn_number 1..n with no gaps
    - terminate: ended_at and outcome set once; nothing changes afterwards
    """

    session_id: str
    code_length: int
    secret_code: str
    started_at: datetime
    device_info: DeviceInfo
    guess_history: list[GuessRecord] = field(default_factory=list)
    ended_at: datetime | None = None
    outcome: Outcome = Outcome.IN_PROGRESS
    abandon_reason: str | None = None

    @property
    def turn_count(self) -> int:
        return len(self.guess_history)

    @property
    def is_terminated(self) -> bool:
        return self.outcome is not Outcome.IN_PROGRESS

    @property
    def last_guess(self) -> GuessRecord | None:
        return self.guess_history[-1] if self.guess_history else None

    @property
    def is_solved(self) -> bool:
        last = self.last_guess
        return last is not None and last.match_count == self.code_length

    def elapsed_seconds(self, until: datetime) -> int:
        return max(0, int((until - self.started_at).total_seconds()))
