"""Decides when a session is over and turns it into a GameRecord.

State machine per session: in_progress -> completed | abandoned. Both end
states are terminal. A session produces at most one record: once it has
terminated, every further trigger returns None.

Record construction is synchronous and touches no network, so it is safe to
call from an unload handler.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from game.session.models import AbandonReason, Outcome
from game.session.rules import calculate_score
from shared.dal.models import GameRecord

if TYPE_CHECKING:
    from collections.abc import Callable

    from game.saving.stats_cache import SessionTally
    from game.session.models import GameSession, PlayerIdentity
    from game.session.tracker import SessionTracker
    from shared.dal.models import GuessRecord

logger = structlog.get_logger()


def classify(session: GameSession) -> Outcome:
    """Current state of a session, derived from its guesses for live sessions."""
    if session.is_terminated:
        return session.outcome
    if session.is_solved:
        return Outcome.COMPLETED
    return Outcome.IN_PROGRESS


class GameClassifier:
    def __init__(
        self,
        tracker: SessionTracker,
        identity: PlayerIdentity,
        *,
        tally: SessionTally | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._tracker = tracker
        self._identity = identity
        self._tally = tally
        self._clock = clock

    def on_guess(self, guess: GuessRecord) -> GameRecord | None:
        """Close the session if this guess solved the code."""
        session = self._tracker.session
        if session is None or session.is_terminated:
            return None
        if guess.match_count != session.code_length:
            return None
        self._tracker.terminate(Outcome.COMPLETED)
        return self._build(session)

    def on_abandon(self, reason: str = AbandonReason.USER_QUIT) -> GameRecord | None:
        """Explicit abandonment, e.g. quitting or starting another game mid-way."""
        return self._abandon(reason)

    def on_page_unload(self) -> GameRecord | None:
        return self._abandon(AbandonReason.PAGE_UNLOAD)

    def on_visibility_hidden(self) -> GameRecord | None:
        return self._abandon(AbandonReason.VISIBILITY_HIDDEN)

    def _abandon(self, reason: str) -> GameRecord | None:
        session = self._tracker.session
        if session is None or classify(session) is not Outcome.IN_PROGRESS:
            return None
        self._tracker.terminate(Outcome.ABANDONED, str(reason))
        # Sessions without a single guess are not worth a row.
        if session.turn_count == 0:
            logger.debug("dropping empty abandoned session", session_id=session.session_id)
            return None
        return self._build(session)

    def _build(self, session: GameSession) -> GameRecord:
        completed = session.outcome is Outcome.COMPLETED
        ended_at = session.ended_at or datetime.fromtimestamp(self._clock(), tz=UTC)
        time_taken = session.elapsed_seconds(ended_at)
        attempts = session.turn_count
        win_rate = self._tally.record_game(completed=completed) if self._tally is not None else None
        device = session.device_info

        return GameRecord(
            session_id=session.session_id,
            difficulty=session.code_length,
            attempts=attempts,
            time_taken=time_taken,
            completed=completed,
            score=calculate_score(session.code_length, attempts, time_taken, completed=completed),
            secret_code=session.secret_code if completed else None,
            final_guess=session.last_guess.guess_value if completed and session.last_guess else None,
            user_id=self._identity.user_id,
            is_guest=self._identity.is_guest,
            game_started_at=session.started_at,
            game_ended_at=ended_at,
            browser_language=device.language,
            timezone=device.timezone,
            abandoned=not completed,
            abandon_reason=None if completed else session.abandon_reason,
            device_info=device.model_dump(mode="json"),
            guess_history=list(session.guess_history),
            total_game_time=time_taken,
            average_time_per_guess=round(time_taken / attempts, 2) if attempts else 0.0,
            win_rate_this_session=win_rate,
            created_at=datetime.fromtimestamp(self._clock(), tz=UTC),
        )
