"""Change Notification: observer hub used by SessionManager and RouteGuard.

Invariants:
    - Listeners are called synchronously, in subscription order
    - A failing listener is logged and skipped; it never blocks later listeners
      or the state transition that triggered it
    - Unsubscribing twice is a no-op
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from sessiongate.core.domain_types import SessionEndReason, SessionEventKind

logger = logging.getLogger(__name__)

E = TypeVar("E")


@dataclass(frozen=True)
class SessionEvent:
    kind: SessionEventKind
    version: int
    generation: int
    reason: SessionEndReason | None = None


class EventHub(Generic[E]):
    """Minimal subscribe/notify emitter."""

    def __init__(self, name: str):
        self._name = name
        self._listeners: list[Callable[[E], None]] = []

    def subscribe(self, listener: Callable[[E], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, event: E) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.error(
                    "%s listener failed: %s", self._name, e, exc_info=True,
                )
