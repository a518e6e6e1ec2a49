"""Fire-and-forget delivery for page teardown.

Unlike the awaited save channels, a beacon send returns immediately, is
never cancelled by the caller, and its response is never read. It only
reports whether the payload was handed to the transport.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import httpx
import structlog

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = structlog.get_logger()


class BeaconTransport:
    def __init__(self, client: httpx.AsyncClient, base_url: str) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._in_flight: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def send(self, path: str, payload: Mapping[str, Any]) -> bool:
        """Queue a POST of payload to path. Returns False when no event loop can carry it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return False
        if self._client.is_closed:
            return False

        body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        task = loop.create_task(self._post(f"{self._base_url}{path}", body))
        # The loop only keeps weak references to tasks.
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        return True

    async def flush(self) -> None:
        """Wait for queued beacons to finish (used on shutdown)."""
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def _post(self, url: str, body: bytes) -> None:
        try:
            await self._client.post(url, content=body, headers={"Content-Type": "application/json"})
        except httpx.HTTPError as e:
            logger.warning("beacon delivery failed", url=url, error=str(e))
