"""Service test fixtures: SessionManager over an in-memory store and a fake identity API.

Invariants:
    - Every test gets a fresh MemoryStorage, TokenStore and SessionManager
    - `events` records every SessionEvent the manager publishes
"""

import pytest

from sessiongate.infrastructure.storage import MemoryStorage
from sessiongate.infrastructure.token_store import TokenStore
from sessiongate.services.session_manager import SessionManager

from tests.services.fake_auth_api import FakeAuthApi


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return TokenStore(storage, prefix="test")


@pytest.fixture
def api():
    return FakeAuthApi()


@pytest.fixture
def manager(api, store):
    return SessionManager(api, store)


@pytest.fixture
def events(manager):
    recorded = []
    manager.subscribe(recorded.append)
    return recorded
