"""Route Policy: table-driven guard deciding allow / redirect / interstitial per navigation.

Invariants:
    - All functions are PURE: no IO, no async, no session lookups
    - classify_route maps inputs to exactly one GuardState; decide_route matches on it
      exhaustively
    - Unauthenticated redirects carry return_to so login can send the user back
    - Onboarding paths are allowed while onboarding is incomplete (no redirect loop)
    - A redirect whose target is the current path is downgraded to Allow
    - A gated route never hard-fails: the result is always Allow, Redirect or Interstitial

Design Decisions:
    - Feature gates are lookup tables keyed by status: every transition visible in one place
    - KYC blocks only routes that pass require_kyc; the dashboard itself is never KYC-gated
"""

from collections.abc import Callable
from dataclasses import dataclass

from sessiongate.core.domain_types import (
    DEFAULT_ROUTES, GuardOutcome, GuardState, InterstitialKind, KycStatus, RoutePaths,
    normalize_path,
)
from sessiongate.core.onboarding_state import OnboardingState, derive_onboarding
from sessiongate.core.profile import UserProfile


@dataclass(frozen=True)
class RouteContext:
    """Everything a guard decision depends on."""
    path: str
    resolved: bool
    authenticated: bool
    profile: UserProfile | None = None
    require_kyc: bool = False
    require_subscription: bool = False
    routes: RoutePaths = DEFAULT_ROUTES


@dataclass(frozen=True)
class GuardDecision:
    outcome: GuardOutcome
    state: GuardState
    target: str | None = None
    interstitial: InterstitialKind | None = None
    return_to: str | None = None

    @classmethod
    def allow(cls, state: GuardState) -> "GuardDecision":
        return cls(GuardOutcome.ALLOW, state)

    @classmethod
    def redirect(
        cls, state: GuardState, target: str, return_to: str | None = None,
    ) -> "GuardDecision":
        return cls(GuardOutcome.REDIRECT, state, target=target, return_to=return_to)

    @classmethod
    def show(
        cls, state: GuardState, kind: InterstitialKind, target: str | None = None,
    ) -> "GuardDecision":
        """Interstitial in place of the route. `target` is its call-to-action link."""
        return cls(GuardOutcome.INTERSTITIAL, state, target=target, interstitial=kind)

    @property
    def allowed(self) -> bool:
        return self.outcome == GuardOutcome.ALLOW


# ─── Feature gate tables ─────────────────────────────────────────

# kyc_status -> decision for routes with require_kyc (approved passes)
_KYC_GATE: dict[KycStatus, Callable[[RoutePaths, str], GuardDecision]] = {
    KycStatus.PENDING: lambda routes, path: GuardDecision.show(
        GuardState.FEATURE_GATED, InterstitialKind.KYC_PENDING,
    ),
    KycStatus.REJECTED: lambda routes, path: _redirect(
        GuardState.FEATURE_GATED, routes.kyc_resubmit, path,
    ),
    KycStatus.NOT_SUBMITTED: lambda routes, path: _redirect(
        GuardState.FEATURE_GATED, routes.kyc_start, path,
    ),
}


def check_kyc_gate(ctx: RouteContext) -> GuardDecision | None:
    if not ctx.require_kyc or ctx.profile is None:
        return None
    gate = _KYC_GATE.get(ctx.profile.kyc_status)
    decision = gate(ctx.routes, ctx.path) if gate else None
    # already on the page the gate sends to
    if decision is None or decision.allowed:
        return None
    return decision


def check_subscription_gate(ctx: RouteContext) -> GuardDecision | None:
    if not ctx.require_subscription or ctx.profile is None:
        return None
    if ctx.profile.has_entitled_subscription:
        return None
    return GuardDecision.show(
        GuardState.FEATURE_GATED, InterstitialKind.SUBSCRIPTION_REQUIRED,
        ctx.routes.subscription_plans,
    )


def check_feature_gates(ctx: RouteContext) -> GuardDecision | None:
    """Chain feature gates. First gate that blocks wins."""
    return check_kyc_gate(ctx) or check_subscription_gate(ctx)


# ─── Classification and decision ─────────────────────────────────

def classify_route(ctx: RouteContext) -> GuardState:
    if not ctx.resolved:
        return GuardState.LOADING
    if not ctx.authenticated:
        return GuardState.UNAUTHENTICATED
    if ctx.profile is None:
        return GuardState.LOADING
    if not ctx.profile.phone_verified:
        return GuardState.PHONE_UNVERIFIED
    if not ctx.profile.profile_completed:
        return GuardState.ONBOARDING_INCOMPLETE
    if ctx.routes.is_under_onboarding_prefix(ctx.path):
        return GuardState.ALLOWED
    if check_feature_gates(ctx) is not None:
        return GuardState.FEATURE_GATED
    return GuardState.ALLOWED


def decide_route(
    ctx: RouteContext, onboarding: OnboardingState | None = None,
) -> GuardDecision:
    """Decide what the router renders for ctx.path."""
    state = classify_route(ctx)
    routes = ctx.routes
    match state:
        case GuardState.LOADING:
            return GuardDecision.show(state, InterstitialKind.LOADING)
        case GuardState.UNAUTHENTICATED:
            return _redirect(state, routes.login, ctx.path)
        case GuardState.PHONE_UNVERIFIED:
            return _redirect(state, routes.verify_phone, ctx.path)
        case GuardState.ONBOARDING_INCOMPLETE:
            if routes.is_onboarding_path(ctx.path):
                return GuardDecision.allow(state)
            onboarding = onboarding or derive_onboarding(ctx.profile, routes)
            return _redirect(state, onboarding.redirect_target, ctx.path)
        case GuardState.FEATURE_GATED:
            return check_feature_gates(ctx)
        case GuardState.ALLOWED:
            if routes.is_under_onboarding_prefix(ctx.path):
                return GuardDecision.redirect(state, routes.dashboard)
            return GuardDecision.allow(state)
    raise AssertionError(f"Unhandled guard state: {state}")


def post_login_target(
    onboarding: OnboardingState, return_to: str | None,
    routes: RoutePaths = DEFAULT_ROUTES,
) -> str:
    """Where to navigate after login/verification: pending onboarding step first,
    then the preserved return_to, then the dashboard."""
    if not onboarding.can_access_dashboard:
        return onboarding.redirect_target
    if not return_to:
        return routes.dashboard
    if (
        normalize_path(return_to) in (routes.login, routes.verify_phone)
        or routes.is_under_onboarding_prefix(return_to)
    ):
        return routes.dashboard
    return return_to
