"""Domain Types: tests for enums and RoutePaths helpers."""

import pytest

from sessiongate.core.domain_types import (
    ENTITLED_SUBSCRIPTIONS, KycStatus, RoutePaths, SubscriptionStatus, normalize_path,
)


def test_kyc_status_values():
    assert {s.value for s in KycStatus} == {"not_submitted", "pending", "approved", "rejected"}


def test_entitled_subscriptions():
    assert ENTITLED_SUBSCRIPTIONS == {SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL}


def test_str_enum_serializes_as_value():
    assert KycStatus.PENDING == "pending"


@pytest.mark.parametrize("raw,expected", [
    ("/login", "/login"),
    ("/login/", "/login"),
    ("/login?next=/x", "/login"),
    ("/login#top", "/login"),
    ("/", "/"),
    ("", "/"),
])
def test_normalize_path(raw, expected):
    assert normalize_path(raw) == expected


def test_onboarding_paths():
    routes = RoutePaths()
    assert routes.onboarding_paths == {
        "/verify-phone", "/onboarding/profile", "/onboarding/streamlined",
    }
    assert routes.is_onboarding_path("/onboarding/profile/")
    assert not routes.is_onboarding_path("/dashboard")


def test_onboarding_prefix_with_trailing_slash():
    routes = RoutePaths(onboarding_prefix="/welcome/")
    assert routes.is_under_onboarding_prefix("/welcome")
    assert routes.is_under_onboarding_prefix("/welcome/step-1")
    assert not routes.is_under_onboarding_prefix("/welcomeback")
