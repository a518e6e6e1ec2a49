import random
from datetime import UTC, datetime

import pytest

from game.saving.stats_cache import SessionTally
from game.session.classifier import GameClassifier
from game.session.models import PlayerIdentity
from game.session.tracker import SessionTracker
from game.tests.helpers.clock import FakeClock
from shared.dal.models import DeviceInfo
from shared.storage import MemoryStorage


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def device_info(clock: FakeClock) -> DeviceInfo:
    return DeviceInfo(
        user_agent="pytest-agent",
        language="en-GB",
        timezone="Europe/London",
        screen_width=1920,
        screen_height=1080,
        captured_at=datetime.fromtimestamp(clock(), tz=UTC),
    )


@pytest.fixture
def tracker(clock: FakeClock, device_info: DeviceInfo) -> SessionTracker:
    return SessionTracker(device_info_provider=lambda: device_info, clock=clock, rng=random.Random(7))


@pytest.fixture
def session_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def classifier(tracker: SessionTracker, clock: FakeClock, session_storage: MemoryStorage) -> GameClassifier:
    return GameClassifier(tracker, PlayerIdentity(), tally=SessionTally(session_storage, clock), clock=clock)
