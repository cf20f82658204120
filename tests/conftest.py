"""
Shared fixtures.

No test touches the network: the remote store is the in-memory one and
the key-value mirror lives in a shared MemoryStorageArea.
"""

import pytest
import pytest_asyncio

from budget_planner.config import AppSettings
from budget_planner.models.records import Identity
from budget_planner.orchestrator import BudgetPlanner
from budget_planner.services.storage import (
    InMemoryKeyValueStore,
    InMemoryRemoteStore,
    LocalMirror,
    MemoryStorageArea,
)
from tests.factories import RecordingNotifier


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(base_currency="INR", undo_history_limit=50, near_limit_ratio=0.9)


@pytest.fixture
def area() -> MemoryStorageArea:
    return MemoryStorageArea()


@pytest.fixture
def kv_store(area) -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore(area)


@pytest.fixture
def mirror(kv_store) -> LocalMirror:
    return LocalMirror(kv_store)


@pytest.fixture
def remote() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def identity() -> Identity:
    return Identity(uid="user-1", email="asha@example.com")


@pytest_asyncio.fixture
async def planner(mirror, remote, notifier, app_settings):
    session = BudgetPlanner(
        mirror,
        remote=remote,
        notifier=notifier,
        app_settings=app_settings,
    )
    await session.start()
    yield session
    await session.close()
