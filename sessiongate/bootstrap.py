"""Session Core Wiring: builds and tears down every component from Settings.

Invariants:
    - Components wired explicitly (no discovery): store -> auth api -> manager ->
      authenticated client -> profile sync -> guard
    - restore() has run before the context manager yields
    - Clients, background syncs and the database engine are closed on exit, even on error

Design Decisions:
    - Async context manager instead of module singletons: tests open and close
      independent cores side by side
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncGenerator

import httpx

from sessiongate.config import Settings, get_settings
from sessiongate.core.repository_protocols import KeyValueStorage
from sessiongate.infrastructure.auth_api import AuthApiClient, ProfileApiClient
from sessiongate.infrastructure.database import DatabaseSessionManager
from sessiongate.infrastructure.http_interceptor import AuthenticatedClient
from sessiongate.infrastructure.observability import setup_logging
from sessiongate.infrastructure.storage import MemoryStorage, SqlStorage
from sessiongate.infrastructure.token_store import TokenStore
from sessiongate.services.profile_sync import ProfileSync
from sessiongate.services.route_guard import RouteGuard
from sessiongate.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


@dataclass
class SessionCore:
    settings: Settings
    tokens: TokenStore
    auth_api: AuthApiClient
    manager: SessionManager
    http: AuthenticatedClient
    profile_sync: ProfileSync
    guard: RouteGuard


@asynccontextmanager
async def open_session_core(
    settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    configure_logging: bool = True,
) -> AsyncGenerator[SessionCore, None]:
    """Open a fully wired session core. `transport` is forwarded to httpx (tests)."""
    settings = settings or get_settings()
    handler = (
        setup_logging(settings.log_level, settings.log_format)
        if configure_logging else None
    )

    db: DatabaseSessionManager | None = None
    storage: KeyValueStorage
    if settings.token_storage == "sql":
        db = DatabaseSessionManager(settings.storage_url)
        await db.create_schema()
        storage = SqlStorage(db)
    else:
        storage = MemoryStorage()

    auth_http = httpx.AsyncClient(
        base_url=settings.auth_service_url,
        timeout=settings.request_timeout_seconds,
        headers=_DEFAULT_HEADERS,
        transport=transport,
    )
    api_http = httpx.AsyncClient(
        base_url=settings.auth_service_url,
        timeout=settings.request_timeout_seconds,
        headers=_DEFAULT_HEADERS,
        transport=transport,
    )

    tokens = TokenStore(storage, settings.storage_key_prefix)
    auth_api = AuthApiClient(auth_http, settings.refresh_timeout_seconds)
    manager = SessionManager(auth_api, tokens)
    http = AuthenticatedClient(api_http, tokens, manager)
    profile_sync = ProfileSync(manager, ProfileApiClient(http))
    guard = RouteGuard(manager, settings.route_paths())
    profile_sync.attach()

    try:
        await manager.restore()
        logger.info("Session core ready", extra={"version": manager.version})
        yield SessionCore(settings, tokens, auth_api, manager, http, profile_sync, guard)
    finally:
        guard.close()
        await profile_sync.aclose()
        await http.aclose()
        await auth_http.aclose()
        if db is not None:
            await db.dispose()
        if handler is not None:
            logging.root.removeHandler(handler)
        logger.info("Session core closed")
