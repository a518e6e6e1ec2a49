"""Lifecycle of a single play-through: start, guesses, termination."""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from game.session.errors import (
    DuplicateGuessError,
    NoActiveSessionError,
    SessionClosedError,
    SubmissionThrottledError,
)
from game.session.models import GameSession, Outcome, new_session_id
from game.session.rules import count_exact_matches, generate_secret, sanitize_guess, validate_code_length
from shared.dal.models import GuessRecord

if TYPE_CHECKING:
    import random
    from collections.abc import Callable

    from game.session.cooldown import SubmissionCooldown
    from shared.dal.models import DeviceInfo

logger = structlog.get_logger()


class SessionTracker:
    """Owns the current GameSession until it terminates.

    Starting a new game replaces the session; the previous one must have been
    handed to the classifier first if it is to be persisted.
    """

    def __init__(
        self,
        *,
        device_info_provider: Callable[[], DeviceInfo],
        reject_duplicate_guesses: bool = True,
        cooldown: SubmissionCooldown | None = None,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        self._device_info_provider = device_info_provider
        self._reject_duplicates = reject_duplicate_guesses
        self._cooldown = cooldown
        self._clock = clock
        self._rng = rng
        self._session: GameSession | None = None

    @property
    def session(self) -> GameSession | None:
        return self._session

    def start(self, code_length: int) -> str:
        """Begin a new session and return its id."""
        validate_code_length(code_length)
        now = self._clock()
        self._session = GameSession(
            session_id=new_session_id(now),
            code_length=code_length,
            secret_code=generate_secret(code_length, self._rng),
            started_at=datetime.fromtimestamp(now, tz=UTC),
            device_info=self._device_info_provider(),
        )
        if self._cooldown is not None:
            self._cooldown.reset()
        logger.info("game session started", session_id=self._session.session_id, code_length=code_length)
        return self._session.session_id

    def record_guess(self, guess_value: str) -> GuessRecord:
        """Validate and append a guess. Raises a GameValidationError with state unchanged."""
        session = self._require_session()
        if session.is_terminated or session.is_solved:
            raise SessionClosedError("This game is already over.")
        if self._cooldown is not None and not self._cooldown.try_acquire():
            raise SubmissionThrottledError("Please wait before submitting another guess.")

        guess = sanitize_guess(guess_value, session.code_length)
        if self._reject_duplicates and any(g.guess_value == guess for g in session.guess_history):
            raise DuplicateGuessError("You already tried this combination.")

        now = self._clock()
        now_ms = int(now * 1000)
        started_ms = int(session.started_at.timestamp() * 1000)
        record = GuessRecord(
            turn_number=session.turn_count + 1,
            guess_value=guess,
            match_count=count_exact_matches(session.secret_code, guess),
            timestamp_ms=now_ms,
            elapsed_since_start_ms=max(0, now_ms - started_ms),
        )
        session.guess_history.append(record)
        return record

    def terminate(self, outcome: Outcome, reason: str | None = None) -> Outcome:
        """End the session. A second call is a no-op returning the recorded outcome."""
        session = self._require_session()
        if session.is_terminated:
            return session.outcome
        if outcome is Outcome.IN_PROGRESS:
            raise ValueError("cannot terminate a session as in-progress")

        session.outcome = outcome
        session.ended_at = datetime.fromtimestamp(self._clock(), tz=UTC)
        session.abandon_reason = reason if outcome is Outcome.ABANDONED else None
        logger.info(
            "game session ended",
            session_id=session.session_id,
            outcome=outcome,
            attempts=session.turn_count,
            reason=session.abandon_reason,
        )
        return outcome

    def _require_session(self) -> GameSession:
        if self._session is None:
            raise NoActiveSessionError("Start a game first.")
        return self._session
