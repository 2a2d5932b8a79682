"""Application Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - get_settings() is cached (lru_cache): single instance per process
    - Route paths are configured here and handed to the pure core as RoutePaths

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for every setting: works out-of-the-box against a local auth service
"""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sessiongate.core.domain_types import RoutePaths


class Settings(BaseSettings):
    """Client settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Identity service
    auth_service_url: str = "http://localhost:8001/api/v1/auth"
    request_timeout_seconds: float = 30.0
    refresh_timeout_seconds: float = 10.0

    # Session store
    token_storage: Literal["memory", "sql"] = "memory"
    storage_url: str = "sqlite+aiosqlite:///sessiongate.db"
    storage_key_prefix: str = "sessiongate"

    @field_validator("storage_url", mode="before")
    @classmethod
    def convert_sqlite_url(cls, v: str) -> str:
        """Plain sqlite:// URLs need the async driver."""
        if isinstance(v, str) and v.startswith("sqlite://"):
            return v.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return v

    @field_validator("auth_service_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # Routes
    login_path: str = "/login"
    verify_phone_path: str = "/verify-phone"
    profile_path: str = "/onboarding/profile"
    streamlined_onboarding_path: str = "/onboarding/streamlined"
    onboarding_prefix: str = "/onboarding"
    dashboard_path: str = "/dashboard"
    kyc_start_path: str = "/kyc"
    kyc_resubmit_path: str = "/kyc/resubmit"
    subscription_plans_path: str = "/subscriptions/plans"

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"

    def route_paths(self) -> RoutePaths:
        return RoutePaths(
            login=self.login_path,
            verify_phone=self.verify_phone_path,
            profile=self.profile_path,
            streamlined_onboarding=self.streamlined_onboarding_path,
            onboarding_prefix=self.onboarding_prefix,
            dashboard=self.dashboard_path,
            kyc_start=self.kyc_start_path,
            kyc_resubmit=self.kyc_resubmit_path,
            subscription_plans=self.subscription_plans_path,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
