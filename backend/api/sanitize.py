"""Normalisation of untrusted game payloads into GameRecords.

Numeric fields are coerced and clamped rather than rejected, strings are
truncated, codes keep digits only, and status is always derived from
completed. The caller decides what to do with a payload that still cannot
form a record.
"""

import math
import re
from datetime import UTC, datetime
from typing import Any

from pydantic import TypeAdapter, ValidationError

from shared.dal.models import MAX_DIFFICULTY, MIN_DIFFICULTY, GameRecord, GuessRecord

MAX_SESSION_ID_LENGTH = 100
MAX_USER_ID_LENGTH = 100
MAX_LANGUAGE_LENGTH = 10
MAX_TIMEZONE_LENGTH = 50
MAX_ABANDON_REASON_LENGTH = 50
MAX_GUESS_HISTORY = 20
DEFAULT_ABANDON_REASON = "unknown"

_NON_DIGITS = re.compile(r"\D")
_datetime_adapter = TypeAdapter(datetime)
# SQLite INTEGER range.
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1


class InvalidPayloadError(ValueError):
    """The payload cannot be turned into a GameRecord."""


def as_int(value: Any) -> int | None:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value if _INT64_MIN <= value <= _INT64_MAX else None
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, float):
        # NaN and infinities have no integer value.
        return as_int(int(value)) if math.isfinite(value) else None
    return None


def _as_float(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if math.isfinite(result) else None


def _digits(value: Any) -> str | None:
    if not value:
        return None
    return _NON_DIGITS.sub("", str(value))[:MAX_DIFFICULTY] or None


def _truncated(value: Any, limit: int) -> str | None:
    if not value:
        return None
    return str(value)[:limit]


def _timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        parsed = _datetime_adapter.validate_python(value)
    except ValidationError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _guess_history(value: Any) -> list[GuessRecord]:
    if not isinstance(value, list):
        return []
    history: list[GuessRecord] = []
    for item in value[-MAX_GUESS_HISTORY:]:
        try:
            history.append(GuessRecord.model_validate(item))
        except ValidationError:
            continue
    return history


def clamp_difficulty(value: Any) -> int:
    difficulty = as_int(value) or MIN_DIFFICULTY
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, difficulty))


def sanitize_game_payload(
    data: Any,
    *,
    abandoned: bool = False,
    now: datetime | None = None,
) -> GameRecord:
    """Build a GameRecord from a client payload.

    ``abandoned=True`` forces abandoned semantics regardless of what the
    payload claims (used by the unload endpoint).
    """
    if not isinstance(data, dict):
        raise InvalidPayloadError("game payload must be a JSON object")
    now = now or datetime.now(UTC)

    session_id = _truncated(data.get("session_id"), MAX_SESSION_ID_LENGTH)
    if not session_id:
        raise InvalidPayloadError("session_id is required")

    completed = False if abandoned else bool(data.get("completed"))
    abandon_reason = None
    if not completed:
        abandon_reason = _truncated(data.get("abandon_reason"), MAX_ABANDON_REASON_LENGTH)
        if abandon_reason is None and abandoned:
            abandon_reason = DEFAULT_ABANDON_REASON

    total_game_time = as_int(data.get("total_game_time"))
    average_time = _as_float(data.get("average_time_per_guess"))
    win_rate = _as_float(data.get("win_rate_this_session"))
    device_info = data.get("device_info")

    try:
        return GameRecord(
            session_id=session_id,
            difficulty=clamp_difficulty(data.get("difficulty")),
            attempts=max(0, as_int(data.get("attempts")) or 0),
            time_taken=max(0, as_int(data.get("time_taken")) or 0),
            completed=completed,
            score=max(0, as_int(data.get("score")) or 0) if completed else 0,
            secret_code=_digits(data.get("secret_code")) if completed else None,
            final_guess=_digits(data.get("final_guess")) if completed else None,
            user_id=_truncated(data.get("user_id"), MAX_USER_ID_LENGTH),
            is_guest=bool(data.get("is_guest")),
            game_started_at=_timestamp(data.get("game_started_at")) or now,
            game_ended_at=_timestamp(data.get("game_ended_at")),
            browser_language=_truncated(data.get("browser_language"), MAX_LANGUAGE_LENGTH),
            timezone=_truncated(data.get("timezone"), MAX_TIMEZONE_LENGTH),
            abandoned=not completed,
            abandon_reason=abandon_reason,
            device_info=device_info if isinstance(device_info, dict) else None,
            guess_history=_guess_history(data.get("guess_history")),
            total_game_time=max(0, total_game_time) if total_game_time is not None else None,
            average_time_per_guess=max(0.0, average_time) if average_time is not None else None,
            win_rate_this_session=max(0.0, min(100.0, win_rate)) if win_rate is not None else None,
            created_at=now,
        )
    except ValidationError as e:
        raise InvalidPayloadError(str(e)) from e
