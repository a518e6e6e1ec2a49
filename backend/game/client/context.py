"""Application context: every piece of client-wide state, wired once at startup.

Components receive what they need from here instead of reaching for module
globals. The context lives for the whole client session and is torn down
with ``aclose()``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
import structlog

from game.client.config import ConfigLoader
from game.client.settings import ClientSettings
from game.saving import (
    BackendApiChannel,
    BeaconTransport,
    LocalDurableQueue,
    LocalStatsCache,
    ReconciliationSync,
    RepositoryChannel,
    SaveDispatcher,
    SessionTally,
    StructuredStoreChannel,
)
from game.session.models import PlayerIdentity
from shared.storage import LocalJsonStorage, MemoryStorage

if TYPE_CHECKING:
    from shared.app_config import AppConfig
    from game.saving import SaveChannel
    from shared.dal.game_result_repository import GameResultRepository
    from shared.storage import KeyValueStorage

logger = structlog.get_logger()


@dataclass
class AppContext:
    settings: ClientSettings
    config: AppConfig
    http: httpx.AsyncClient
    local_storage: KeyValueStorage
    session_storage: KeyValueStorage
    identity: PlayerIdentity
    queue: LocalDurableQueue
    stats_cache: LocalStatsCache
    tally: SessionTally
    dispatcher: SaveDispatcher
    beacon: BeaconTransport
    online: bool = True
    owns_http: bool = field(default=False, repr=False)
    sync: ReconciliationSync = field(init=False)

    def __post_init__(self) -> None:
        # Sync asks the context, so online/offline flips are seen immediately.
        self.sync = ReconciliationSync(self.queue, self.http, self.settings.api_base_url, is_online=self.is_online)

    def is_online(self) -> bool:
        return self.online

    async def aclose(self) -> None:
        await self.sync.cancel_scheduled()
        await self.beacon.flush()
        if self.owns_http:
            await self.http.aclose()


def build_channels(
    config: AppConfig,
    http: httpx.AsyncClient,
    base_url: str,
    repository: GameResultRepository | None = None,
) -> list[SaveChannel]:
    """Save channels in priority order: structured store, backend API, local repository."""
    channels: list[SaveChannel] = [
        StructuredStoreChannel(http, config.supabase.url, config.supabase.api_key),
        BackendApiChannel(http, base_url),
    ]
    if config.features.local_database and repository is not None:
        channels.append(RepositoryChannel(repository))
    return channels


async def create_app_context(
    settings: ClientSettings | None = None,
    *,
    http: httpx.AsyncClient | None = None,
    repository: GameResultRepository | None = None,
    identity: PlayerIdentity | None = None,
    local_storage: KeyValueStorage | None = None,
) -> AppContext:
    if settings is None:
        settings = ClientSettings()

    owns_http = http is None
    if http is None:
        http = httpx.AsyncClient(timeout=settings.request_timeout_seconds)

    config = await ConfigLoader(http, settings).load()

    if local_storage is None:
        local_storage = LocalJsonStorage(settings.storage_dir)
    session_storage = MemoryStorage()
    queue = LocalDurableQueue(local_storage, capacity=settings.queue_capacity)
    stats_cache = LocalStatsCache(local_storage)

    channels = build_channels(config, http, settings.api_base_url, repository)
    dispatcher = SaveDispatcher(channels, stats_cache=stats_cache)

    context = AppContext(
        settings=settings,
        config=config,
        http=http,
        local_storage=local_storage,
        session_storage=session_storage,
        identity=identity or PlayerIdentity(guest_mode=config.features.guest_mode),
        queue=queue,
        stats_cache=stats_cache,
        tally=SessionTally(session_storage),
        dispatcher=dispatcher,
        beacon=BeaconTransport(http, settings.api_base_url),
        owns_http=owns_http,
    )

    logger.info(
        "client context ready",
        environment=config.environment,
        channels=dispatcher.channel_names,
        queued=len(queue),
        badge=config.environment_badge,
    )
    return context
