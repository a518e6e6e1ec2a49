"""Ordered-fallback delivery of GameRecords across save channels."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Sequence

    from game.saving.channels import AttemptResult, SaveChannel
    from game.saving.stats_cache import LocalStatsCache
    from shared.dal.models import GameRecord

logger = structlog.get_logger()


@dataclass(frozen=True)
class SaveOutcome:
    delivered: bool
    channel: str | None = None
    attempts: tuple[AttemptResult, ...] = field(default_factory=tuple)


class SaveDispatcher:
    """Try each channel in priority order until one stores the record.

    Attempts for a record are strictly sequential, so at most one request per
    record is in flight. A duplicate-session conflict counts as delivered.
    When every channel fails the outcome is ``delivered=False`` and the caller
    is expected to put the record in the local durable queue.
    """

    def __init__(self, channels: Sequence[SaveChannel], stats_cache: LocalStatsCache | None = None) -> None:
        if not channels:
            raise ValueError("at least one save channel is required")
        self._channels = tuple(channels)
        self._stats_cache = stats_cache

    @property
    def channel_names(self) -> list[str]:
        return [c.name for c in self._channels]

    async def save(self, record: GameRecord) -> SaveOutcome:
        results: list[AttemptResult] = []
        for position, channel in enumerate(self._channels, start=1):
            logger.debug("attempting save", channel=channel.name, position=position, session_id=record.session_id)
            result = await channel.attempt(record)
            results.append(result)
            if result.succeeded:
                logger.info(
                    "game result saved",
                    channel=channel.name,
                    status=result.status,
                    session_id=record.session_id,
                )
                if self._stats_cache is not None:
                    self._stats_cache.record(record)
                return SaveOutcome(delivered=True, channel=channel.name, attempts=tuple(results))

        logger.error("all save channels failed", session_id=record.session_id, channels=self.channel_names)
        return SaveOutcome(delivered=False, attempts=tuple(results))
