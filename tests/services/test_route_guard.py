"""RouteGuard: tests for the reactive wrapper over the route policy.

Tests cover:
    - Loading until restore() resolves the session
    - Decisions follow login/logout/profile updates (cache invalidated per version)
    - Listeners notified with the new version on every change
    - post_login_target uses the live onboarding state
"""

from sessiongate.core.domain_types import (
    GuardOutcome, GuardState, InterstitialKind, OnboardingStep, RoutePaths,
)
from sessiongate.services.route_guard import RouteGuard


async def test_loading_until_restored(manager):
    guard = RouteGuard(manager)
    assert guard.decide("/dashboard").interstitial == InterstitialKind.LOADING
    await manager.restore()
    decision = guard.decide("/dashboard")
    assert decision.outcome == GuardOutcome.REDIRECT
    assert decision.target == "/login"


async def test_decision_follows_login_and_logout(manager, api):
    guard = RouteGuard(manager)
    await manager.restore()
    assert not guard.decide("/dashboard").allowed

    await manager.login("ada", api.password)
    assert guard.decide("/dashboard").allowed

    await manager.logout()
    assert guard.decide("/dashboard").target == "/login"


async def test_decision_follows_profile_update(manager, api):
    guard = RouteGuard(manager)
    await manager.login("ada", api.password)
    assert guard.decide("/invest", require_kyc=True).allowed

    await manager.update_profile({"kyc_status": "pending"})
    decision = guard.decide("/invest", require_kyc=True)
    assert decision.state == GuardState.FEATURE_GATED
    assert decision.interstitial == InterstitialKind.KYC_PENDING


async def test_decisions_cached_within_version(manager, api):
    guard = RouteGuard(manager)
    await manager.login("ada", api.password)
    assert guard.decide("/dashboard") is guard.decide("/dashboard")
    assert guard.decide("/dashboard") is not guard.decide("/dashboard", require_kyc=True)


async def test_listeners_receive_versions(manager, api):
    guard = RouteGuard(manager)
    versions = []
    guard.subscribe(versions.append)
    await manager.login("ada", api.password)
    await manager.update_profile({"kyc_status": "rejected"})
    assert versions == [manager.version - 1, manager.version]


async def test_unchanged_profile_does_not_notify(manager, api):
    guard = RouteGuard(manager)
    await manager.login("ada", api.password)
    versions = []
    guard.subscribe(versions.append)
    await manager.update_profile({"kyc_status": "approved"})
    assert versions == []


async def test_onboarding_state_for_unverified_user(manager, api):
    api.user = {"phone_verified": False}
    guard = RouteGuard(manager)
    await manager.login("ada", api.password)
    assert guard.onboarding.current_step == OnboardingStep.PHONE_VERIFICATION
    assert guard.decide("/dashboard").target == "/verify-phone"
    assert guard.post_login_target("/portfolio") == "/verify-phone"


async def test_post_login_target_returns_to_path(manager, api):
    guard = RouteGuard(manager)
    await manager.login("ada", api.password)
    assert guard.post_login_target("/portfolio") == "/portfolio"
    assert guard.post_login_target() == "/dashboard"


async def test_custom_routes(manager, api):
    guard = RouteGuard(manager, RoutePaths(login="/signin"))
    await manager.restore()
    assert guard.decide("/dashboard").target == "/signin"


async def test_close_stops_notifications(manager, api):
    guard = RouteGuard(manager)
    versions = []
    guard.subscribe(versions.append)
    guard.close()
    await manager.login("ada", api.password)
    assert versions == []
