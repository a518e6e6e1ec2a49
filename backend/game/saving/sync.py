"""Reconciliation of the local durable queue with the server.

Triggered when connectivity returns, a fixed delay after startup, and a while
after a record lands in the queue. The server upserts on session_id with
duplicates ignored, so resending a record that already made it is harmless.
"""

from __future__ import annotations

import asyncio
import contextlib
from http import HTTPStatus
from typing import TYPE_CHECKING

import httpx
import structlog
from pydantic import ValidationError

from shared.dal.models import SyncReport

if TYPE_CHECKING:
    from collections.abc import Callable

    from game.saving.queue import LocalDurableQueue
    from shared.dal.models import QueuedRecord

logger = structlog.get_logger()

MAX_SYNC_BATCH = 50


class SyncFailure(Exception):
    """The bulk sync request did not succeed; the queue is left as it was."""


class ReconciliationSync:
    def __init__(
        self,
        queue: LocalDurableQueue,
        client: httpx.AsyncClient,
        base_url: str,
        *,
        is_online: Callable[[], bool] = lambda: True,
        path: str = "/api/sync-backup-games",
        batch_size: int = MAX_SYNC_BATCH,
    ) -> None:
        if not (1 <= batch_size <= MAX_SYNC_BATCH):
            raise ValueError(f"batch_size must be 1-{MAX_SYNC_BATCH}, got {batch_size}")
        self._queue = queue
        self._client = client
        self._endpoint = f"{base_url.rstrip('/')}{path}"
        self._is_online = is_online
        self._batch_size = batch_size
        self._lock = asyncio.Lock()
        self._scheduled: set[asyncio.Task[SyncReport]] = set()

    async def sync_pending(self) -> SyncReport:
        """Send every queued record; remove the ones the server acknowledged.

        Records enqueued while the request is in flight stay queued for the
        next run. Failures are logged and never raised.
        """
        async with self._lock:
            entries = self._queue.drain_all()
            if not entries:
                return SyncReport(synced_count=0, requested_count=0)
            if not self._is_online():
                logger.info("offline, deferring backup sync", pending=len(entries))
                return SyncReport(synced_count=0, requested_count=0)

            logger.info("syncing backup results", pending=len(entries))
            synced = requested = 0
            for start in range(0, len(entries), self._batch_size):
                batch = entries[start : start + self._batch_size]
                try:
                    report = await self._post_batch(batch)
                except SyncFailure as e:
                    logger.warning("backup sync failed, keeping queue", error=str(e), remaining=len(entries) - start)
                    break
                # Partial duplicates are still success: the server already holds those rows.
                self._queue.discard(entry.session_id for entry in batch)
                synced += report.synced_count
                requested += report.requested_count

            if requested:
                logger.info("backup results synced", synced_count=synced, requested_count=requested)
            return SyncReport(synced_count=synced, requested_count=requested)

    async def _post_batch(self, batch: list[QueuedRecord]) -> SyncReport:
        payload = {"games": [entry.to_record().to_wire() for entry in batch]}
        try:
            response = await self._client.post(self._endpoint, json=payload)
        except httpx.HTTPError as e:
            raise SyncFailure(f"{type(e).__name__}: {e}") from e
        if response.status_code != HTTPStatus.OK:
            raise SyncFailure(f"HTTP {response.status_code}")
        try:
            return SyncReport.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise SyncFailure("unreadable sync response") from e

    def schedule(self, delay_seconds: float) -> asyncio.Task[SyncReport]:
        """Run sync_pending after a delay, in the background."""
        task = asyncio.get_running_loop().create_task(self._delayed_sync(delay_seconds))
        self._scheduled.add(task)
        task.add_done_callback(self._scheduled.discard)
        return task

    async def _delayed_sync(self, delay_seconds: float) -> SyncReport:
        await asyncio.sleep(delay_seconds)
        return await self.sync_pending()

    async def cancel_scheduled(self) -> None:
        tasks = list(self._scheduled)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
