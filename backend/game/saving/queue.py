"""Bounded local queue for records that no save channel accepted."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog
from pydantic import ValidationError

from shared.dal.models import QueuedRecord

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from shared.dal.models import GameRecord
    from shared.storage import KeyValueStorage

logger = structlog.get_logger()

BACKUP_STORAGE_KEY = "lytic_backup_results"
DEFAULT_QUEUE_CAPACITY = 10


class LocalDurableQueue:
    """Append-only buffer kept in durable storage until a sync confirms it.

    At capacity the oldest entry is evicted before appending: under a long
    outage only the most recent ``capacity`` games survive. Every mutation
    rewrites the whole list, so there are no partial in-place edits.

    Entries that no longer validate are never sent, but they keep their place
    in the stored list and leave it only through eviction.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        capacity: int = DEFAULT_QUEUE_CAPACITY,
        key: str = BACKUP_STORAGE_KEY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._storage = storage
        self._capacity = capacity
        self._key = key
        self._clock = clock

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self.drain_all())

    def enqueue(self, record: GameRecord) -> QueuedRecord | None:
        """Append record. Returns None when durable storage could not be written."""
        entry = QueuedRecord.from_record(record, backup_timestamp=int(self._clock() * 1000))
        items = self._load()
        overflow = len(items) + 1 - self._capacity
        if overflow > 0:
            evicted, items = items[:overflow], items[overflow:]
            logger.warning(
                "backup queue full, evicting oldest records",
                evicted=[_session_id_of(item) for item in evicted],
                capacity=self._capacity,
            )
        items.append(entry)
        try:
            self._write(items)
        except OSError:
            logger.exception("failed to save game result to local backup", session_id=record.session_id)
            return None
        logger.info("game result saved to local backup", session_id=record.session_id, queued=len(items))
        return entry

    def drain_all(self) -> list[QueuedRecord]:
        """Return every readable entry, oldest first, without removing anything."""
        return [item for item in self._load() if isinstance(item, QueuedRecord)]

    def discard(self, session_ids: Iterable[str]) -> int:
        """Remove the given sessions, keeping anything enqueued since. Returns count removed."""
        targets = set(session_ids)
        items = self._load()
        kept = [item for item in items if not (isinstance(item, QueuedRecord) and item.session_id in targets)]
        removed = len(items) - len(kept)
        if not removed:
            return 0
        try:
            self._write(kept)
        except OSError:
            # The entries stay queued and are sent again; the server ignores duplicates.
            logger.exception("failed to update local backup", session_ids=sorted(targets))
            return 0
        return removed

    def clear(self) -> None:
        self._storage.remove(self._key)

    def _load(self) -> list[QueuedRecord | object]:
        raw = self._storage.get(self._key)
        if not isinstance(raw, list):
            return []
        items: list[QueuedRecord | object] = []
        for item in raw:
            try:
                items.append(QueuedRecord.model_validate(item))
            except ValidationError:
                logger.warning("skipping unreadable backup entry", session_id=_session_id_of(item))
                items.append(item)
        return items

    def _write(self, items: list[QueuedRecord | object]) -> None:
        if items:
            self._storage.set(
                self._key,
                [item.model_dump(mode="json") if isinstance(item, QueuedRecord) else item for item in items],
            )
        else:
            self._storage.remove(self._key)


def _session_id_of(item: object) -> str | None:
    if isinstance(item, QueuedRecord):
        return item.session_id
    return item.get("session_id") if isinstance(item, dict) else None
