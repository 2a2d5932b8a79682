"""Profile Sync: fetches /me and pushes the result into SessionManager.

Invariants:
    - The session generation is captured BEFORE the fetch starts; a result that
      resolves after logout/login is dropped by SessionManager.update_profile
    - Background syncs are tracked and cancelled by aclose(); failures are logged,
      never raised into the event loop
"""

import asyncio
import logging

from sessiongate.core.domain_types import SessionEventKind
from sessiongate.core.profile import UserProfile
from sessiongate.core.repository_protocols import ProfileApi
from sessiongate.services.events import SessionEvent
from sessiongate.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

_SYNC_TRIGGERS = frozenset({
    SessionEventKind.SESSION_RESOLVED, SessionEventKind.SESSION_STARTED,
})


class ProfileSync:
    def __init__(self, manager: SessionManager, api: ProfileApi):
        self._manager = manager
        self._api = api
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe = None

    async def sync(self) -> UserProfile | None:
        """Fetch the profile for the current session. None when logged out or stale."""
        if not self._manager.is_authenticated:
            return None
        generation = self._manager.generation
        raw = await self._api.get_profile()
        return await self._manager.update_profile(raw, generation=generation)

    def attach(self) -> None:
        """Fetch automatically whenever a session starts without a profile."""
        if self._unsubscribe is None:
            self._unsubscribe = self._manager.subscribe(self._on_session_event)

    def _on_session_event(self, event: SessionEvent) -> None:
        if event.kind not in _SYNC_TRIGGERS:
            return
        if not self._manager.is_authenticated or self._manager.profile is not None:
            return
        task = asyncio.get_running_loop().create_task(self.sync())
        self._tasks.add(task)
        task.add_done_callback(self._on_sync_done)

    def _on_sync_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Background profile sync failed: %s", exc)

    async def aclose(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
