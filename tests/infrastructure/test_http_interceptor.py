"""Authenticated HTTP Client: tests for bearer attachment and refresh-and-retry.

Tests cover:
    - Bearer token attached when stored; request sent without it otherwise
    - 401 -> exactly one refresh and one retry with the new token
    - 401 on the retry -> RequestUnauthorizedError after exactly one retry
    - Refresh failure -> SessionExpiredError, original request not retried
    - Concurrent 401s share a single refresh through SessionManager
    - Transport failures -> NetworkError, not retried
"""

import asyncio

import httpx
import pytest

from sessiongate.core.errors import NetworkError, RequestUnauthorizedError, SessionExpiredError
from sessiongate.core.session_state import Session
from sessiongate.infrastructure.http_interceptor import AuthenticatedClient
from sessiongate.infrastructure.storage import MemoryStorage
from sessiongate.infrastructure.token_store import TokenStore
from sessiongate.services.session_manager import SessionManager

from tests.services.fake_auth_api import FakeAuthApi, tokens

BASE_URL = "http://api.test"


class StubRefresher:
    """Writes a new access token into the store, or fails."""

    def __init__(self, store: TokenStore, error: Exception | None = None):
        self.store = store
        self.error = error
        self.calls = 0

    async def refresh(self) -> Session:
        self.calls += 1
        if self.error is not None:
            raise self.error
        await self.store.set_tokens("fresh", "refresh-2")
        return Session("fresh", "refresh-2")


async def _make_store(access: str | None = "stale") -> TokenStore:
    store = TokenStore(MemoryStorage(), prefix="test")
    if access:
        await store.set_tokens(access, "refresh-1")
    return store


def _make_client(handler, store, refresher) -> AuthenticatedClient:
    http = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return AuthenticatedClient(http, store, refresher)


def _accepts(token: str):
    """Helper: handler returning 200 only for the given bearer token."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        auth = request.headers.get("Authorization")
        seen.append(auth)
        if auth == f"Bearer {token}":
            return httpx.Response(200, json={"ok": True})
        return httpx.Response(401, json={"message": "expired"})

    return handler, seen


# ─── Bearer attachment ───────────────────────────────────────────

async def test_attaches_bearer_token():
    store = await _make_store("good")
    handler, seen = _accepts("good")
    response = await _make_client(handler, store, StubRefresher(store)).get("/portfolio")
    assert response.status_code == 200
    assert seen == ["Bearer good"]


async def test_no_token_sends_unauthenticated():
    store = await _make_store(None)
    seen = []

    def handler(request):
        seen.append(request.headers.get("Authorization"))
        return httpx.Response(200)

    await _make_client(handler, store, StubRefresher(store)).get("/public")
    assert seen == [None]


async def test_non_401_errors_returned_untouched():
    store = await _make_store("good")
    refresher = StubRefresher(store)
    client = _make_client(lambda r: httpx.Response(403), store, refresher)
    response = await client.post("/orders", json={"qty": 1})
    assert response.status_code == 403
    assert refresher.calls == 0


# ─── Refresh and retry ───────────────────────────────────────────

async def test_401_refreshes_and_retries_once():
    store = await _make_store("stale")
    refresher = StubRefresher(store)
    handler, seen = _accepts("fresh")
    response = await _make_client(handler, store, refresher).get("/portfolio")
    assert response.status_code == 200
    assert refresher.calls == 1
    assert seen == ["Bearer stale", "Bearer fresh"]


async def test_retry_keeps_method_and_body():
    store = await _make_store("stale")
    bodies = []

    def handler(request):
        bodies.append((request.method, request.content))
        if request.headers["Authorization"] == "Bearer fresh":
            return httpx.Response(201)
        return httpx.Response(401)

    client = _make_client(handler, store, StubRefresher(store))
    response = await client.put("/orders/1", json={"qty": 2})
    assert response.status_code == 201
    assert bodies[0] == bodies[1]
    assert bodies[0][0] == "PUT"


async def test_second_401_raises_after_exactly_one_retry():
    store = await _make_store("stale")
    refresher = StubRefresher(store)
    calls = []

    def handler(request):
        calls.append(request.headers.get("Authorization"))
        return httpx.Response(401)

    with pytest.raises(RequestUnauthorizedError):
        await _make_client(handler, store, refresher).get("/portfolio")
    assert len(calls) == 2
    assert refresher.calls == 1


async def test_refresh_failure_propagates_session_expired():
    store = await _make_store("stale")
    refresher = StubRefresher(store, error=SessionExpiredError())
    handler, seen = _accepts("fresh")
    with pytest.raises(SessionExpiredError):
        await _make_client(handler, store, refresher).get("/portfolio")
    assert seen == ["Bearer stale"]


async def test_token_rotated_meanwhile_skips_refresh():
    store = await _make_store("stale")
    refresher = StubRefresher(store)

    def handler(request):
        if request.headers["Authorization"] == "Bearer stale":
            # another caller finished a refresh while this request was in flight
            store._storage._data["test_access_token"] = "rotated"
            return httpx.Response(401)
        return httpx.Response(200)

    response = await _make_client(handler, store, refresher).get("/portfolio")
    assert response.status_code == 200
    assert refresher.calls == 0


async def test_concurrent_401s_share_one_refresh():
    api = FakeAuthApi()
    store = TokenStore(MemoryStorage(), prefix="test")
    manager = SessionManager(api, store)
    await manager.login("ada@example.com", api.password)  # stores access-1
    api.refresh_results = [tokens(2)]
    api.refresh_gate = asyncio.Event()

    handler, seen = _accepts("access-2")
    client = _make_client(handler, store, manager)
    requests = [asyncio.create_task(client.get(f"/item/{i}")) for i in range(4)]
    while seen.count("Bearer access-1") < 4:
        await asyncio.sleep(0)
    api.refresh_gate.set()
    responses = await asyncio.gather(*requests)

    assert [r.status_code for r in responses] == [200] * 4
    assert api.count("refresh") == 1
    assert seen.count("Bearer access-2") == 4


# ─── Transport failures ──────────────────────────────────────────

async def test_transport_failure_is_network_error():
    store = await _make_store("good")
    refresher = StubRefresher(store)
    attempts = []

    def handler(request):
        attempts.append(1)
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(NetworkError):
        await _make_client(handler, store, refresher).get("/portfolio")
    assert len(attempts) == 1
    assert refresher.calls == 0


async def test_timeout_flagged():
    store = await _make_store("good")

    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(NetworkError) as exc:
        await _make_client(handler, store, StubRefresher(store)).get("/portfolio")
    assert exc.value.timeout is True
