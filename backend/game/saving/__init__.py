"""Delivery of finished games: save channels, fallback dispatch, local queue and sync."""

from game.saving.beacon import BeaconTransport
from game.saving.channels import (
    AttemptResult,
    AttemptStatus,
    BackendApiChannel,
    ChannelFailure,
    RepositoryChannel,
    SaveChannel,
    StructuredStoreChannel,
)
from game.saving.dispatcher import SaveDispatcher, SaveOutcome
from game.saving.queue import LocalDurableQueue
from game.saving.stats_cache import CachedStats, LocalStatsCache, SessionTally
from game.saving.sync import ReconciliationSync, SyncFailure

__all__ = [
    "AttemptResult",
    "AttemptStatus",
    "BackendApiChannel",
    "BeaconTransport",
    "CachedStats",
    "ChannelFailure",
    "LocalDurableQueue",
    "LocalStatsCache",
    "ReconciliationSync",
    "RepositoryChannel",
    "SaveChannel",
    "SaveDispatcher",
    "SaveOutcome",
    "SessionTally",
    "StructuredStoreChannel",
    "SyncFailure",
]
