"""Domain Types: enums and value types shared across the gating core.

Invariants:
    - All valid states encoded as Enums, no raw string matching outside profile.py
    - RoutePaths is immutable; onboarding paths derive from it, never hardcoded elsewhere
    - KYC and subscription enums list exactly the statuses the identity service reports

Design Decisions:
    - str Enums: serialize to JSON without custom encoders
    - RoutePaths lives in core (not config): derive_onboarding and decide_route stay
      pure and importable without settings
"""

from dataclasses import dataclass
from enum import Enum


# ─── Profile statuses ────────────────────────────────────────────

class KycStatus(str, Enum):
    """Identity verification workflow status."""
    NOT_SUBMITTED = "not_submitted"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status as reported by the subscription API."""
    NONE = "none"
    TRIAL = "trial"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


ENTITLED_SUBSCRIPTIONS = frozenset({SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL})


# ─── Onboarding ──────────────────────────────────────────────────

class OnboardingStep(str, Enum):
    """Where the user currently stands in onboarding."""
    LOGIN = "login"
    PHONE_VERIFICATION = "phone_verification"
    PROFILE_COMPLETION = "profile_completion"
    KYC_OPTIONAL = "kyc_optional"
    KYC_PENDING = "kyc_pending"
    KYC_REJECTED = "kyc_rejected"
    COMPLETE = "complete"


class NextAction(str, Enum):
    """The action the UI should prompt for next."""
    LOGIN = "login"
    VERIFY_PHONE = "verify_phone"
    COMPLETE_PROFILE = "complete_profile"
    SUBMIT_KYC_OPTIONAL = "submit_kyc_optional"
    KYC_UNDER_REVIEW = "kyc_under_review"
    RESUBMIT_KYC = "resubmit_kyc"
    COMPLETE = "complete"


MANDATORY_STEPS = (OnboardingStep.PHONE_VERIFICATION, OnboardingStep.PROFILE_COMPLETION)


# ─── Route guard ─────────────────────────────────────────────────

class GuardState(str, Enum):
    """Per-navigation guard state. Recomputed on every input change."""
    LOADING = "loading"
    UNAUTHENTICATED = "unauthenticated"
    PHONE_UNVERIFIED = "phone_unverified"
    ONBOARDING_INCOMPLETE = "onboarding_incomplete"
    ALLOWED = "allowed"
    FEATURE_GATED = "feature_gated"


class GuardOutcome(str, Enum):
    """What the router should do with the navigation."""
    ALLOW = "allow"
    REDIRECT = "redirect"
    INTERSTITIAL = "interstitial"


class InterstitialKind(str, Enum):
    """Informational screens rendered in place of a route."""
    LOADING = "loading"
    KYC_PENDING = "kyc_pending"
    SUBSCRIPTION_REQUIRED = "subscription_required"


# ─── Session events ──────────────────────────────────────────────

class SessionEventKind(str, Enum):
    """Session transitions published by SessionManager."""
    SESSION_RESOLVED = "session_resolved"
    SESSION_STARTED = "session_started"
    SESSION_REFRESHED = "session_refreshed"
    SESSION_ENDED = "session_ended"
    PROFILE_UPDATED = "profile_updated"


class SessionEndReason(str, Enum):
    LOGOUT = "logout"
    REFRESH_FAILED = "refresh_failed"
    CORRUPTED = "corrupted"


# ─── Routes ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class RoutePaths:
    """Application paths the gating core redirects to."""
    login: str = "/login"
    verify_phone: str = "/verify-phone"
    profile: str = "/onboarding/profile"
    streamlined_onboarding: str = "/onboarding/streamlined"
    onboarding_prefix: str = "/onboarding"
    dashboard: str = "/dashboard"
    kyc_start: str = "/kyc"
    kyc_resubmit: str = "/kyc/resubmit"
    subscription_plans: str = "/subscriptions/plans"

    @property
    def onboarding_paths(self) -> frozenset[str]:
        """Paths that stay reachable while onboarding is incomplete."""
        return frozenset({self.verify_phone, self.profile, self.streamlined_onboarding})

    def is_onboarding_path(self, path: str) -> bool:
        return normalize_path(path) in self.onboarding_paths

    def is_under_onboarding_prefix(self, path: str) -> bool:
        path = normalize_path(path)
        prefix = self.onboarding_prefix.rstrip("/")
        return path == prefix or path.startswith(prefix + "/")


def normalize_path(path: str) -> str:
    """Drop query string and trailing slash so '/login/?x=1' matches '/login'."""
    path = path.split("?", 1)[0].split("#", 1)[0]
    if len(path) > 1:
        path = path.rstrip("/")
    return path or "/"


DEFAULT_ROUTES = RoutePaths()
