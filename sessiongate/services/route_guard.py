"""Route Guard: reactive wrapper composing SessionManager with the pure route policy.

Invariants:
    - Decisions depend only on (session version, path, feature flags); cached per
      version and dropped the moment the version moves
    - Listeners are notified only when the session manager reports an actual change
    - Holds no state of its own beyond the cache: decisions can never drift from inputs
"""

import logging
from collections.abc import Callable

from sessiongate.core.domain_types import DEFAULT_ROUTES, RoutePaths
from sessiongate.core.onboarding_state import OnboardingState, derive_onboarding
from sessiongate.core.route_policy import (
    GuardDecision, RouteContext, decide_route, post_login_target,
)
from sessiongate.services.events import EventHub, SessionEvent
from sessiongate.services.session_manager import SessionManager

logger = logging.getLogger(__name__)


class RouteGuard:
    """Per-navigation decisions for the router."""

    def __init__(self, manager: SessionManager, routes: RoutePaths = DEFAULT_ROUTES):
        self._manager = manager
        self._routes = routes
        self._cache_version = manager.version
        self._decisions: dict[tuple[str, bool, bool], GuardDecision] = {}
        self._onboarding: OnboardingState | None = None
        self._events: EventHub[int] = EventHub("route_guard")
        self._unsubscribe = manager.subscribe(self._on_session_event)

    @property
    def routes(self) -> RoutePaths:
        return self._routes

    @property
    def onboarding(self) -> OnboardingState:
        self._sync_cache()
        if self._onboarding is None:
            profile = self._manager.profile if self._manager.is_authenticated else None
            self._onboarding = derive_onboarding(profile, self._routes)
        return self._onboarding

    def decide(
        self, path: str, *, require_kyc: bool = False, require_subscription: bool = False,
    ) -> GuardDecision:
        self._sync_cache()
        key = (path, require_kyc, require_subscription)
        decision = self._decisions.get(key)
        if decision is None:
            ctx = RouteContext(
                path=path,
                resolved=self._manager.is_resolved,
                authenticated=self._manager.is_authenticated,
                profile=self._manager.profile,
                require_kyc=require_kyc,
                require_subscription=require_subscription,
                routes=self._routes,
            )
            onboarding = self.onboarding if ctx.authenticated and ctx.profile else None
            decision = decide_route(ctx, onboarding)
            self._decisions[key] = decision
            logger.debug(
                "Guard decision %s for %s", decision.outcome.value, path,
                extra={"path": path, "version": self._cache_version},
            )
        return decision

    def post_login_target(self, return_to: str | None = None) -> str:
        return post_login_target(self.onboarding, return_to, self._routes)

    def subscribe(self, listener: Callable[[int], None]) -> Callable[[], None]:
        """listener(version) runs after every session or profile change."""
        return self._events.subscribe(listener)

    def close(self) -> None:
        self._unsubscribe()

    def _sync_cache(self) -> None:
        if self._manager.version != self._cache_version:
            self._cache_version = self._manager.version
            self._decisions.clear()
            self._onboarding = None

    def _on_session_event(self, event: SessionEvent) -> None:
        self._sync_cache()
        self._events.notify(event.version)
