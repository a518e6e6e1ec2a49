"""Tests for ReconciliationSync: draining the local queue into the server."""

import asyncio
import json

import httpx
import pytest

from game.saving.queue import LocalDurableQueue
from game.saving.sync import ReconciliationSync
from shared.storage import MemoryStorage
from shared.tests.factories import make_record

API_URL = "http://api.example"


class SyncServer:
    """Records bulk sync requests and answers them like the API server would."""

    def __init__(self, *, fail_after: int | None = None, status_code: int = 200) -> None:
        self.batches: list[list[dict]] = []
        self.known: set[str] = set()
        self._fail_after = fail_after
        self._status_code = status_code

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self._fail_after is not None and len(self.batches) >= self._fail_after:
            raise httpx.ConnectError("connection reset")
        games = json.loads(request.content)["games"]
        self.batches.append(games)
        if self._status_code != 200:
            return httpx.Response(self._status_code, json={"error": "boom"})
        new = {g["session_id"] for g in games} - self.known
        self.known |= new
        return httpx.Response(200, json={"synced_count": len(new), "requested_count": len(games)})


@pytest.fixture
def queue(clock) -> LocalDurableQueue:
    return LocalDurableQueue(MemoryStorage(), capacity=200, clock=clock)


def _sync(queue, server, **kwargs) -> ReconciliationSync:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return ReconciliationSync(queue, client, API_URL, **kwargs)


class TestSyncPending:
    async def test_empty_queue_sends_nothing(self, queue):
        server = SyncServer()

        report = await _sync(queue, server).sync_pending()

        assert (report.synced_count, report.requested_count) == (0, 0)
        assert server.batches == []

    async def test_drains_and_clears_queue(self, queue):
        for i in range(3):
            queue.enqueue(make_record(f"s{i}", completed=i != 1))
        server = SyncServer()

        report = await _sync(queue, server).sync_pending()

        assert report.synced_count == report.requested_count == 3
        assert len(queue) == 0
        sent = server.batches[0]
        assert [g["session_id"] for g in sent] == ["s0", "s1", "s2"]
        assert "backup_timestamp" not in sent[0]
        assert sent[1]["status"] == "abandoned"

    async def test_duplicates_still_clear_queue(self, queue):
        queue.enqueue(make_record("s1"))
        queue.enqueue(make_record("s2"))
        server = SyncServer()
        server.known.add("s1")

        report = await _sync(queue, server).sync_pending()

        assert (report.synced_count, report.requested_count) == (1, 2)
        assert len(queue) == 0

    async def test_offline_keeps_queue(self, queue):
        queue.enqueue(make_record())
        server = SyncServer()

        report = await _sync(queue, server, is_online=lambda: False).sync_pending()

        assert report.requested_count == 0
        assert server.batches == []
        assert len(queue) == 1

    @pytest.mark.parametrize("server", [SyncServer(fail_after=0), SyncServer(status_code=500)])
    async def test_failure_keeps_queue(self, queue, server):
        queue.enqueue(make_record("s1"))

        report = await _sync(queue, server).sync_pending()

        assert report.synced_count == 0
        assert [e.session_id for e in queue.drain_all()] == ["s1"]

    async def test_unreadable_response_keeps_queue(self, queue):
        queue.enqueue(make_record("s1"))

        report = await _sync(queue, lambda _r: httpx.Response(200, text="ok")).sync_pending()

        assert report.synced_count == 0
        assert len(queue) == 1

    async def test_batches_of_fifty(self, queue):
        for i in range(120):
            queue.enqueue(make_record(f"s{i}"))
        server = SyncServer()

        report = await _sync(queue, server).sync_pending()

        assert [len(b) for b in server.batches] == [50, 50, 20]
        assert report.synced_count == 120
        assert len(queue) == 0

    async def test_failed_batch_keeps_only_unsent_records(self, queue):
        for i in range(60):
            queue.enqueue(make_record(f"s{i}"))
        server = SyncServer(fail_after=1)

        report = await _sync(queue, server).sync_pending()

        assert report.synced_count == 50
        assert [e.session_id for e in queue.drain_all()] == [f"s{i}" for i in range(50, 60)]

    async def test_record_enqueued_during_request_survives(self, queue):
        queue.enqueue(make_record("s1"))

        def server(request: httpx.Request) -> httpx.Response:
            queue.enqueue(make_record("late"))
            games = json.loads(request.content)["games"]
            return httpx.Response(200, json={"synced_count": len(games), "requested_count": len(games)})

        await _sync(queue, server).sync_pending()

        assert [e.session_id for e in queue.drain_all()] == ["late"]

    def test_batch_size_bounds(self, queue):
        with pytest.raises(ValueError, match="batch_size"):
            _sync(queue, SyncServer(), batch_size=51)


class TestScheduling:
    async def test_schedule_runs_after_delay(self, queue):
        queue.enqueue(make_record("s1"))
        sync = _sync(queue, SyncServer())

        report = await sync.schedule(0)

        assert report.synced_count == 1

    async def test_cancel_scheduled(self, queue):
        queue.enqueue(make_record("s1"))
        server = SyncServer()
        sync = _sync(queue, server)
        task = sync.schedule(3600)

        await sync.cancel_scheduled()

        assert task.cancelled()
        assert server.batches == []

    async def test_concurrent_syncs_do_not_double_send(self, queue):
        queue.enqueue(make_record("s1"))
        server = SyncServer()
        sync = _sync(queue, server)

        await asyncio.gather(sync.sync_pending(), sync.sync_pending())

        assert len(server.batches) == 1
