"""Profile Ingestion: the single boundary where raw profile payloads become UserProfile.

Invariants:
    - normalize_profile is the ONLY place that knows about snake_case/camelCase,
      legacy aliases (is_phone_verified), nested kyc/subscription objects and
      response envelopes ({"user": ...} / {"data": ...})
    - Everything downstream reads canonical attribute names only
    - Unknown/missing kyc_status -> not_submitted; unknown/missing subscription -> none
    - Missing flags are False, never None
    - merge_profile only overrides fields present in the update payload

Design Decisions:
    - Pydantic model with AliasChoices: aliasing declared next to each field instead of
      scattered `a or b` fallbacks
    - frozen model: a profile snapshot cannot be mutated behind the guard's back
"""

from collections.abc import Mapping
from datetime import date
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from sessiongate.core.domain_types import (
    ENTITLED_SUBSCRIPTIONS, KycStatus, SubscriptionStatus,
)

_ENVELOPE_KEYS = ("user", "data")
_TRUE_STRINGS = frozenset({"true", "1", "yes", "y", "on"})


def _aliases(snake: str, camel: str, *legacy: str) -> AliasChoices:
    return AliasChoices(snake, camel, *legacy)


class UserProfile(BaseModel):
    """Canonical profile snapshot consumed by the gating core."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    id: str | None = None
    email: str | None = None
    phone: str | None = None
    full_name: str | None = Field(None, validation_alias=_aliases("full_name", "fullName"))
    phone_verified: bool = Field(
        False,
        validation_alias=_aliases(
            "phone_verified", "phoneVerified", "is_phone_verified", "isPhoneVerified",
        ),
    )
    profile_completed: bool = Field(
        False, validation_alias=_aliases("profile_completed", "profileCompleted"),
    )
    date_of_birth: str | None = Field(
        None, validation_alias=_aliases("date_of_birth", "dateOfBirth"),
    )
    country: str | None = None
    city: str | None = None
    address: str | None = None
    kyc_status: KycStatus = Field(
        KycStatus.NOT_SUBMITTED, validation_alias=_aliases("kyc_status", "kycStatus"),
    )
    subscription_status: SubscriptionStatus = Field(
        SubscriptionStatus.NONE,
        validation_alias=_aliases("subscription_status", "subscriptionStatus"),
    )

    @field_validator(
        "id", "email", "phone", "full_name", "country", "city", "address",
        mode="before",
    )
    @classmethod
    def scalar_to_str(cls, v: Any) -> str | None:
        if v is None or isinstance(v, str):
            return v
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def date_to_iso(cls, v: Any) -> str | None:
        if isinstance(v, date):
            return v.isoformat()
        return v

    @field_validator("phone_verified", "profile_completed", mode="before")
    @classmethod
    def coerce_flag(cls, v: Any) -> bool:
        if v is None:
            return False
        if isinstance(v, str):
            return v.strip().lower() in _TRUE_STRINGS
        return bool(v)

    @field_validator("kyc_status", mode="before")
    @classmethod
    def coerce_kyc(cls, v: Any) -> KycStatus:
        return _coerce_enum(KycStatus, v, KycStatus.NOT_SUBMITTED)

    @field_validator("subscription_status", mode="before")
    @classmethod
    def coerce_subscription(cls, v: Any) -> SubscriptionStatus:
        return _coerce_enum(SubscriptionStatus, v, SubscriptionStatus.NONE)

    @property
    def has_entitled_subscription(self) -> bool:
        return self.subscription_status in ENTITLED_SUBSCRIPTIONS

    def to_storage(self) -> dict:
        """Canonical JSON-ready dict (the cached-profile blob)."""
        return self.model_dump(mode="json")


def _coerce_enum(enum_cls, value, default):
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            return default
    return default


def _unwrap(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    """Strip {"user": {...}} / {"data": {...}} envelopes returned by /me."""
    for key in _ENVELOPE_KEYS:
        inner = raw.get(key)
        if isinstance(inner, Mapping):
            return inner
    return raw


def _flatten_nested(raw: Mapping[str, Any]) -> dict[str, Any]:
    """Lift kyc.status / subscription.status into their flat fields."""
    flat = dict(raw)
    kyc = flat.pop("kyc", None)
    if isinstance(kyc, Mapping) and not {"kyc_status", "kycStatus"} & flat.keys():
        if "status" in kyc:
            flat["kyc_status"] = kyc["status"]
    subscription = flat.pop("subscription", None)
    if (
        isinstance(subscription, Mapping)
        and not {"subscription_status", "subscriptionStatus"} & flat.keys()
    ):
        if "status" in subscription:
            flat["subscription_status"] = subscription["status"]
    return flat


def normalize_profile(raw: Mapping[str, Any] | UserProfile | None) -> UserProfile | None:
    """Convert any supported profile payload into the canonical UserProfile."""
    if raw is None:
        return None
    if isinstance(raw, UserProfile):
        return raw
    return UserProfile.model_validate(_flatten_nested(_unwrap(raw)))


def merge_profile(
    current: UserProfile | None, update: Mapping[str, Any] | UserProfile,
) -> UserProfile:
    """Apply a (possibly partial) update on top of the current snapshot."""
    incoming = normalize_profile(update)
    if current is None or isinstance(update, UserProfile):
        return incoming
    changes = {name: getattr(incoming, name) for name in incoming.model_fields_set}
    return current.model_copy(update=changes)
