"""Session Manager: login, registration, phone verification, refresh and logout.

Invariants:
    - SessionManager is the ONLY writer of TokenStore and of the cached profile
    - In memory, session is None or a full token pair; never half a pair
    - refresh() is single-flighted: concurrent callers share one asyncio.Task and one
      network call, and all receive the same Session or the same SessionExpiredError
    - A refresh still in flight for an earlier generation is never joined by a newer
      session; it finishes (and is discarded) on its own
    - A failed refresh clears the store and emits session_ended exactly once,
      however many callers were waiting
    - logout() always clears local state, even when the remote revoke fails
    - generation increments on every login/register/verify/logout/session end (never on
      refresh); results tagged with an older generation are discarded
    - version increments only when session or profile actually change; every event
      carries the version it produced

Design Decisions:
    - asyncio.shield around the shared refresh task: one cancelled waiter cannot cancel
      the refresh for everyone else
    - Every refresh failure (HTTP, transport, malformed response) maps to
      SessionExpiredError; the original error is chained as __cause__
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from sessiongate.core.domain_types import SessionEndReason, SessionEventKind
from sessiongate.core.errors import (
    ApiError, CorruptedSessionError, ErrorContext, SessionExpiredError,
)
from sessiongate.core.profile import UserProfile, merge_profile, normalize_profile
from sessiongate.core.repository_protocols import AuthApi
from sessiongate.core.session_state import Session
from sessiongate.infrastructure.token_store import TokenStore
from sessiongate.schemas.auth import TokenResponse
from sessiongate.services.events import EventHub, SessionEvent

logger = logging.getLogger(__name__)


class SessionManager:
    """Owns the session lifecycle and publishes its transitions."""

    def __init__(self, api: AuthApi, store: TokenStore):
        self._api = api
        self._store = store
        self._session: Session | None = None
        self._profile: UserProfile | None = None
        self._resolved = False
        self._generation = 0
        self._version = 0
        self._refresh_task: asyncio.Task[Session] | None = None
        self._refresh_generation = 0
        self._events: EventHub[SessionEvent] = EventHub("session")

    # ─── Read-only state ─────────────────────────────────────────

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def profile(self) -> UserProfile | None:
        return self._profile

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def is_resolved(self) -> bool:
        """False until restore() or the first login/verify finishes."""
        return self._resolved

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def version(self) -> int:
        return self._version

    @property
    def refresh_in_flight(self) -> bool:
        return self._refresh_task is not None

    # ─── Observers ───────────────────────────────────────────────

    def subscribe(self, listener: Callable[[SessionEvent], None]) -> Callable[[], None]:
        return self._events.subscribe(listener)

    def notify(
        self, kind: SessionEventKind, reason: SessionEndReason | None = None,
    ) -> None:
        event = SessionEvent(kind, self._version, self._generation, reason)
        logger.info(
            "Session event: %s", kind.value,
            extra={
                "event": kind.value, "version": self._version,
                "generation": self._generation,
                "reason": reason.value if reason else None,
            },
        )
        self._events.notify(event)

    # ─── Bootstrap ───────────────────────────────────────────────

    async def restore(self) -> Session | None:
        """Load the persisted session on start-up. Half a token pair is cleared."""
        try:
            session = await self._store.get_tokens()
        except CorruptedSessionError as e:
            logger.warning(
                "Clearing corrupted persisted session: %s", e.message,
                extra={"reason": SessionEndReason.CORRUPTED.value},
            )
            session = None
        if session is None:
            # stale profile blobs or half pairs never outlive their tokens
            await self._store.clear_all()
            profile = None
        else:
            profile = await self._store.get_profile()

        self._session = session
        self._profile = profile
        self._resolved = True
        self._bump()
        self.notify(SessionEventKind.SESSION_RESOLVED)
        return session

    # ─── Authentication ──────────────────────────────────────────

    async def login(self, identifier: str, password: str) -> Session:
        """Raises InvalidCredentialsError; other errors pass through unchanged."""
        tokens = await self._api.login(identifier, password)
        if not tokens.has_token_pair:
            raise ApiError("Login response did not include a token pair", 502)
        return await self._start_session(tokens)

    async def register(self, payload: Mapping[str, Any]) -> Session | None:
        """Returns None when the identity service issues tokens only after phone
        verification. ValidationError passes through for form display."""
        tokens = await self._api.register(payload)
        if not tokens.has_token_pair:
            logger.info("Registration accepted; session starts after phone verification")
            return None
        return await self._start_session(tokens)

    async def verify_phone(self, phone: str, otp: str) -> Session | None:
        """Raises InvalidOtpError / OtpExpiredError.

        Without a token pair in the response, an existing session is kept and its
        profile marked verified; with no session at all, returns None.
        """
        tokens = await self._api.verify_phone(phone, otp)
        if tokens.has_token_pair:
            fallback = None
            if self._profile is not None:
                fallback = self._profile.model_copy(update={"phone_verified": True})
            return await self._start_session(tokens, fallback_profile=fallback)
        if self._session is None:
            return None
        await self.update_profile(tokens.user or {"phone_verified": True})
        return self._session

    async def resend_otp(self, phone: str) -> None:
        await self._api.resend_otp(phone)

    async def _start_session(
        self, tokens: TokenResponse, fallback_profile: UserProfile | None = None,
    ) -> Session:
        session = Session.issue(tokens.access_token, tokens.refresh_token)
        profile = normalize_profile(tokens.user) if tokens.user else fallback_profile

        self._generation += 1
        await self._store.clear_all()
        await self._store.set_tokens(session.access_token, session.refresh_token)
        if profile is not None:
            await self._store.set_profile(profile)

        self._session = session
        self._profile = profile
        self._resolved = True
        self._bump()
        self.notify(SessionEventKind.SESSION_STARTED)
        return session

    # ─── Refresh (single-flight) ─────────────────────────────────

    async def refresh(self) -> Session:
        """Obtain a new access token. Concurrent callers share one refresh."""
        task = self._refresh_task
        if task is None or self._refresh_generation != self._generation:
            # a refresh still running for an earlier session is never joined
            task = asyncio.create_task(self._run_refresh(self._generation))
            self._refresh_task = task
            self._refresh_generation = self._generation
        else:
            logger.debug("Joining in-flight refresh")
        return await asyncio.shield(task)

    async def _run_refresh(self, generation: int) -> Session:
        try:
            session = self._session
            if session is None:
                raise SessionExpiredError(
                    context=ErrorContext(operation="refresh", generation=generation),
                )
            try:
                tokens = await self._api.refresh(session.refresh_token)
                if not tokens.access_token:
                    raise ApiError("Refresh response did not include an access token", 502)
            except Exception as e:
                logger.warning(
                    "Token refresh failed: %s", e,
                    extra={"generation": generation, "reason": "refresh_failed"},
                )
                if generation == self._generation:
                    await self._end_session(SessionEndReason.REFRESH_FAILED)
                raise SessionExpiredError(
                    context=ErrorContext(operation="refresh", generation=generation),
                ) from e

            if generation != self._generation or self._session is None:
                logger.info(
                    "Discarding refresh result from a previous session",
                    extra={"generation": generation},
                )
                raise SessionExpiredError(
                    context=ErrorContext(operation="refresh", generation=generation),
                )

            refreshed = self._session.rotated(tokens.access_token, tokens.refresh_token)
            await self._store.set_tokens(refreshed.access_token, refreshed.refresh_token)
            self._session = refreshed
            self._bump()
            self.notify(SessionEventKind.SESSION_REFRESHED)
            return refreshed
        finally:
            if self._refresh_task is asyncio.current_task():
                self._refresh_task = None

    # ─── Logout / session end ────────────────────────────────────

    async def logout(self) -> None:
        """Revoke remotely (best effort) and clear local state unconditionally."""
        session = self._session
        self._invalidate()
        try:
            if session is not None:
                await self._api.logout(session.access_token)
        except Exception as e:
            logger.warning("Remote logout failed, local session cleared anyway: %s", e)
        finally:
            await self._finish_end(SessionEndReason.LOGOUT, had_session=session is not None)

    async def _end_session(self, reason: SessionEndReason) -> None:
        had_session = self._session is not None
        self._invalidate()
        await self._finish_end(reason, had_session)

    def _invalidate(self) -> None:
        self._generation += 1
        self._refresh_task = None
        self._session = None
        self._profile = None
        self._resolved = True

    async def _finish_end(self, reason: SessionEndReason, had_session: bool) -> None:
        try:
            await self._store.clear_all()
        finally:
            if had_session:
                self._bump()
                self.notify(SessionEventKind.SESSION_ENDED, reason)

    # ─── Profile ─────────────────────────────────────────────────

    async def update_profile(
        self, raw: Mapping[str, Any] | UserProfile, *, generation: int | None = None,
    ) -> UserProfile | None:
        """Merge a profile payload into the current snapshot.

        Returns None (and changes nothing) when there is no session or when
        `generation` belongs to an earlier session.
        """
        if generation is not None and generation != self._generation:
            logger.info(
                "Ignoring profile result from a previous session",
                extra={"generation": generation},
            )
            return None
        if self._session is None:
            logger.debug("Ignoring profile update without a session")
            return None

        profile = merge_profile(self._profile, raw)
        if profile == self._profile:
            return profile
        self._profile = profile
        await self._store.set_profile(profile)
        self._bump()
        self.notify(SessionEventKind.PROFILE_UPDATED)
        return profile

    def _bump(self) -> None:
        self._version += 1
