import httpx
import pytest

from game.client.context import create_app_context
from game.client.settings import ClientSettings
from game.tests.helpers.fake_backend import API_BASE_URL, FakeBackend
from shared.storage import MemoryStorage


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def settings(tmp_path) -> ClientSettings:
    return ClientSettings(
        api_base_url=API_BASE_URL,
        storage_dir=str(tmp_path / "client"),
        guess_cooldown_seconds=0,
        retry_sync_delay_seconds=3600,
        startup_sync_delay_seconds=2,
    )


@pytest.fixture
def local_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
async def context(backend, settings, local_storage):
    http = httpx.AsyncClient(transport=httpx.MockTransport(backend))
    ctx = await create_app_context(settings, http=http, local_storage=local_storage)
    yield ctx
    await ctx.aclose()
    await http.aclose()
