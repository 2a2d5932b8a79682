"""Auth Schemas: request bodies sent to, and token responses read from, the identity service.

Invariants:
    - RegisterRequest.full_name is built from first/last name when not given
    - VerifyPhoneRequest.otp is 4-8 digits, stripped
    - TokenResponse accepts snake_case and camelCase token keys
    - TokenResponse.has_token_pair is True only when BOTH tokens are non-empty
"""

from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class LoginRequest(BaseModel):
    """Login by email or phone."""
    identifier: str = Field(min_length=1)
    password: str = Field(min_length=1)

    @field_validator("identifier")
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("identifier cannot be empty or whitespace")
        return v


class RegisterRequest(BaseModel):
    """Registration payload. Extra keys from the form are dropped."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    email: str
    phone: str
    password: str = Field(min_length=8)
    full_name: str | None = Field(None, validation_alias=AliasChoices("full_name", "fullName"))
    first_name: str | None = Field(
        None, validation_alias=AliasChoices("first_name", "firstName"), exclude=True,
    )
    last_name: str | None = Field(
        None, validation_alias=AliasChoices("last_name", "lastName"), exclude=True,
    )

    @model_validator(mode="after")
    def build_full_name(self):
        if not self.full_name:
            parts = [p.strip() for p in (self.first_name, self.last_name) if p and p.strip()]
            self.full_name = " ".join(parts) or None
        return self


class VerifyPhoneRequest(BaseModel):
    phone: str = Field(min_length=1)
    otp: str

    @field_validator("otp", mode="before")
    @classmethod
    def strip_otp(cls, v: Any) -> str:
        v = str(v).strip()
        if not v.isdigit() or not 4 <= len(v) <= 8:
            raise ValueError("otp must be 4-8 digits")
        return v


class RefreshRequest(BaseModel):
    refresh_token: str = Field(min_length=1)


class TokenResponse(BaseModel):
    """{access_token, refresh_token, user} as returned by login/register/verify/refresh."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    access_token: str | None = Field(
        None, validation_alias=AliasChoices("access_token", "accessToken"),
    )
    refresh_token: str | None = Field(
        None, validation_alias=AliasChoices("refresh_token", "refreshToken"),
    )
    user: dict[str, Any] | None = None

    @property
    def has_token_pair(self) -> bool:
        return bool(self.access_token) and bool(self.refresh_token)
