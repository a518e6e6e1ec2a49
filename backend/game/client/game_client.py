"""Event-facing facade of the game client.

Gameplay and page lifecycle events come in here; GameRecords go out through
the save dispatcher, the unload beacon or the local durable queue. Nothing
below raises to the caller except GameValidationError for rejected input.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from game.session.classifier import GameClassifier
from game.session.cooldown import SubmissionCooldown
from game.session.models import AbandonReason, capture_device_info
from game.session.rules import validate_code_length
from game.session.tracker import SessionTracker

if TYPE_CHECKING:
    import random
    from collections.abc import Callable

    from game.client.context import AppContext
    from game.saving import CachedStats, SaveOutcome
    from game.session.models import GameSession
    from shared.dal.models import GameRecord, GuessRecord, SyncReport

logger = structlog.get_logger()

ABANDONED_GAME_PATH = "/api/save-abandoned-game"


@dataclass(frozen=True)
class TurnResult:
    guess: GuessRecord
    record: GameRecord | None = None
    save: SaveOutcome | None = None

    @property
    def solved(self) -> bool:
        return self.record is not None and self.record.completed


class GameClient:
    def __init__(
        self,
        context: AppContext,
        *,
        clock: Callable[[], float] = time.time,
        rng: random.Random | None = None,
    ) -> None:
        settings = context.settings
        self._context = context
        self._tracker = SessionTracker(
            device_info_provider=lambda: capture_device_info(
                settings.user_agent,
                screen_width=settings.screen_width,
                screen_height=settings.screen_height,
                now=clock(),
            ),
            reject_duplicate_guesses=settings.reject_duplicate_guesses,
            cooldown=SubmissionCooldown(settings.guess_cooldown_seconds),
            clock=clock,
            rng=rng,
        )
        self._classifier = GameClassifier(self._tracker, context.identity, tally=context.tally, clock=clock)

    @property
    def context(self) -> AppContext:
        return self._context

    @property
    def session(self) -> GameSession | None:
        return self._tracker.session

    def local_stats(self) -> CachedStats:
        return self._context.stats_cache.get(self._context.identity.user_id)

    async def start(self) -> None:
        """Kick off the delayed startup sync when earlier games are still queued."""
        pending = len(self._context.queue)
        if pending:
            logger.info("pending backup results found", pending=pending)
            self._context.sync.schedule(self._context.settings.startup_sync_delay_seconds)

    async def new_game(self, code_length: int = 4) -> str:
        """Start a game; a game still in progress is abandoned and saved first."""
        validate_code_length(code_length)
        previous = self._classifier.on_abandon(AbandonReason.NEW_GAME)
        if previous is not None:
            await self._persist(previous)
        return self._tracker.start(code_length)

    async def submit_guess(self, raw_guess: str) -> TurnResult:
        guess = self._tracker.record_guess(raw_guess)
        record = self._classifier.on_guess(guess)
        if record is None:
            return TurnResult(guess=guess)
        logger.info("game won", session_id=record.session_id, attempts=record.attempts, score=record.score)
        return TurnResult(guess=guess, record=record, save=await self._persist(record))

    async def abandon(self, reason: str = AbandonReason.USER_QUIT) -> SaveOutcome | None:
        record = self._classifier.on_abandon(reason)
        if record is None:
            return None
        return await self._persist(record)

    def handle_page_unload(self) -> GameRecord | None:
        """Synchronous: safe to call while the process is being torn down."""
        record = self._classifier.on_page_unload()
        if record is not None:
            self._send_unload(record)
        return record

    def handle_visibility_change(self, *, hidden: bool) -> GameRecord | None:
        if not hidden:
            return None
        record = self._classifier.on_visibility_hidden()
        if record is not None:
            self._send_unload(record)
        return record

    async def handle_online(self) -> SyncReport:
        self._context.online = True
        logger.info("connection restored, syncing backup results")
        return await self._context.sync.sync_pending()

    def handle_offline(self) -> None:
        self._context.online = False
        logger.info("connection lost, results will be queued locally")

    def _send_unload(self, record: GameRecord) -> None:
        if self._context.online and self._context.beacon.send(ABANDONED_GAME_PATH, record.to_wire()):
            logger.info("abandoned game sent via beacon", session_id=record.session_id)
            return
        self._context.queue.enqueue(record)

    async def _persist(self, record: GameRecord) -> SaveOutcome:
        outcome = await self._context.dispatcher.save(record)
        if outcome.delivered:
            return outcome
        queued = self._context.queue.enqueue(record)
        if queued is not None and self._context.online:
            self._context.sync.schedule(self._context.settings.retry_sync_delay_seconds)
        return outcome
