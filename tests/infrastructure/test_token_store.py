"""Token Store: tests over both storage backends.

Tests cover:
    - set_tokens/get_tokens round trip and key layout
    - clear_all removes tokens and profile; idempotent
    - Half a persisted pair raises CorruptedSessionError
    - Unreadable profile blob reads as None
    - SqlStorage writes are all-or-nothing within one transaction
"""

import pytest

from sessiongate.core.errors import CorruptedSessionError, StorageError
from sessiongate.core.profile import UserProfile
from sessiongate.infrastructure.database import DatabaseSessionManager
from sessiongate.infrastructure.storage import MemoryStorage, SqlStorage
from sessiongate.infrastructure.token_store import TokenStore


@pytest.fixture
async def sql_db(tmp_path):
    db = DatabaseSessionManager(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await db.create_schema()
    yield db
    await db.dispose()


@pytest.fixture(params=["memory", "sql"])
async def storage(request, sql_db):
    if request.param == "memory":
        return MemoryStorage()
    return SqlStorage(sql_db)


@pytest.fixture
def store(storage):
    return TokenStore(storage, prefix="app")


# ─── Tokens ──────────────────────────────────────────────────────

async def test_empty_store_has_no_session(store):
    assert await store.get_tokens() is None
    assert await store.get_access_token() is None
    assert await store.get_refresh_token() is None


async def test_set_and_get_tokens(store):
    await store.set_tokens("access-1", "refresh-1")
    session = await store.get_tokens()
    assert session.access_token == "access-1"
    assert session.refresh_token == "refresh-1"
    assert await store.get_access_token() == "access-1"


async def test_key_layout(store, storage):
    await store.set_tokens("a", "r")
    values = await storage.get_many(["app_access_token", "app_refresh_token"])
    assert values == {"app_access_token": "a", "app_refresh_token": "r"}


async def test_overwrite_tokens(store):
    await store.set_tokens("a1", "r1")
    await store.set_tokens("a2", "r2")
    assert (await store.get_tokens()).access_token == "a2"


async def test_set_tokens_rejects_half_pair(store):
    with pytest.raises(ValueError):
        await store.set_tokens("a", "")
    assert await store.get_tokens() is None


async def test_half_pair_is_corrupted(store, storage):
    await storage.set_many({"app_access_token": "orphan"})
    with pytest.raises(CorruptedSessionError):
        await store.get_tokens()


async def test_clear_all_removes_everything(store):
    await store.set_tokens("a", "r")
    await store.set_profile(UserProfile(phone_verified=True))
    await store.clear_all()
    assert await store.get_access_token() is None
    assert await store.get_refresh_token() is None
    assert await store.get_profile() is None


async def test_clear_all_idempotent(store):
    await store.clear_all()
    await store.clear_all()
    assert await store.get_tokens() is None


# ─── Profile ─────────────────────────────────────────────────────

async def test_profile_round_trip(store):
    profile = UserProfile(email="a@example.com", phone_verified=True, kyc_status="pending")
    await store.set_profile(profile)
    assert await store.get_profile() == profile


async def test_unreadable_profile_is_none(store, storage):
    await storage.set_many({"app_user_data": "{not json"})
    assert await store.get_profile() is None


async def test_profile_blob_of_wrong_type_is_none(store, storage):
    await storage.set_many({"app_user_data": "[1, 2]"})
    assert await store.get_profile() is None


# ─── Backends ────────────────────────────────────────────────────

async def test_set_tokens_is_single_backend_write():
    class RecordingStorage(MemoryStorage):
        def __init__(self):
            super().__init__()
            self.writes = []

        async def set_many(self, items):
            self.writes.append(dict(items))
            await super().set_many(items)

    storage = RecordingStorage()
    await TokenStore(storage, prefix="app").set_tokens("a", "r")
    assert storage.writes == [{"app_access_token": "a", "app_refresh_token": "r"}]


async def test_sql_set_many_rolls_back_on_failure(sql_db):
    storage = SqlStorage(sql_db)
    with pytest.raises(StorageError):
        await storage.set_many({"first": "ok", "second": None})
    assert await storage.get_many(["first", "second"]) == {"first": None, "second": None}


async def test_memory_snapshot():
    storage = MemoryStorage({"k": "v"})
    await storage.delete_many(["missing"])
    assert storage.snapshot() == {"k": "v"}


async def test_health_check(sql_db):
    assert await sql_db.health_check() is True
