"""Save channels: interchangeable backends that can durably store a GameRecord.

Every channel answers an attempt with an AttemptResult instead of raising:
DELIVERED (stored now), CONFLICT (already stored under the same session_id,
which counts as success) or FAILURE (try the next channel).
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from http import HTTPStatus
from typing import TYPE_CHECKING

import httpx
import structlog

from shared.dal.game_result_repository import InsertOutcome

if TYPE_CHECKING:
    from shared.dal.game_result_repository import GameResultRepository
    from shared.dal.models import GameRecord

logger = structlog.get_logger()

# Postgres unique_violation, surfaced by PostgREST in the error body.
UNIQUE_VIOLATION_CODE = "23505"


class AttemptStatus(StrEnum):
    DELIVERED = "delivered"
    CONFLICT = "conflict"
    FAILURE = "failure"


@dataclass(frozen=True)
class AttemptResult:
    channel: str
    status: AttemptStatus
    detail: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status is not AttemptStatus.FAILURE


class ChannelFailure(Exception):
    """One channel could not store a record (network, validation, server error)."""

    def __init__(self, channel: str, reason: str) -> None:
        self.channel = channel
        self.reason = reason
        super().__init__(f"{channel}: {reason}")


class SaveChannel(ABC):
    name: str

    @abstractmethod
    async def attempt(self, record: GameRecord) -> AttemptResult: ...


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if message:
            return f"HTTP {response.status_code}: {message}"
    return f"HTTP {response.status_code}"


def _is_unique_violation(response: httpx.Response) -> bool:
    try:
        body = response.json()
    except ValueError:
        return False
    return isinstance(body, dict) and body.get("code") == UNIQUE_VIOLATION_CODE


class _HttpChannel(SaveChannel):
    """Shared request/classification logic for channels that speak HTTP."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def attempt(self, record: GameRecord) -> AttemptResult:
        try:
            response = await self._send(record)
            return self._classify(response)
        except httpx.HTTPError as e:
            failure = ChannelFailure(self.name, f"{type(e).__name__}: {e}")
        except ChannelFailure as e:
            failure = e
        logger.warning("save channel failed", channel=self.name, session_id=record.session_id, reason=failure.reason)
        return AttemptResult(self.name, AttemptStatus.FAILURE, failure.reason)

    @abstractmethod
    async def _send(self, record: GameRecord) -> httpx.Response: ...

    def _classify(self, response: httpx.Response) -> AttemptResult:
        if response.is_success:
            return AttemptResult(self.name, AttemptStatus.DELIVERED)
        if response.status_code == HTTPStatus.CONFLICT or _is_unique_violation(response):
            return AttemptResult(self.name, AttemptStatus.CONFLICT, "duplicate session_id")
        raise ChannelFailure(self.name, _error_detail(response))


class StructuredStoreChannel(_HttpChannel):
    """Inserts into the hosted Postgres table through its REST interface.

    Row-level security on the store decides what the anon/publishable key may
    write; the key travels both as ``apikey`` and as the bearer token.
    """

    name = "structured_store"

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        api_key: str,
        *,
        table: str = "game_results",
        access_token: str | None = None,
    ) -> None:
        super().__init__(client)
        self._endpoint = f"{url.rstrip('/')}/rest/v1/{table}"
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Prefer": "return=minimal",
        }

    async def _send(self, record: GameRecord) -> httpx.Response:
        return await self._client.post(self._endpoint, json=[record.to_wire()], headers=self._headers)


class BackendApiChannel(_HttpChannel):
    """Posts the record to the game's own API server."""

    name = "backend_api"

    def __init__(self, client: httpx.AsyncClient, base_url: str, *, path: str = "/api/save-game") -> None:
        super().__init__(client)
        self._endpoint = f"{base_url.rstrip('/')}{path}"

    async def _send(self, record: GameRecord) -> httpx.Response:
        return await self._client.post(self._endpoint, json=record.to_wire())


class RepositoryChannel(SaveChannel):
    """Writes straight into a local GameResultRepository (local database mode)."""

    name = "local_database"

    def __init__(self, repository: GameResultRepository) -> None:
        self._repository = repository

    async def attempt(self, record: GameRecord) -> AttemptResult:
        try:
            outcome = await self._repository.insert_result(record)
        except sqlite3.Error as e:
            logger.warning("save channel failed", channel=self.name, session_id=record.session_id, reason=str(e))
            return AttemptResult(self.name, AttemptStatus.FAILURE, str(e))
        if outcome is InsertOutcome.DUPLICATE:
            return AttemptResult(self.name, AttemptStatus.CONFLICT, "duplicate session_id")
        return AttemptResult(self.name, AttemptStatus.DELIVERED)
