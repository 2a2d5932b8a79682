"""Boundary Protocols: contracts between the session core and its shell.

Invariants:
    - Core NEVER imports from infrastructure/ or services/; arrows point inward only
    - All IO is reached through these Protocol types
    - Implementations are provided by the shell via constructor injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - Async in Protocol: implementations do IO; pure core functions that consume their
      results are never async themselves
"""

from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from sessiongate.schemas.auth import TokenResponse


class KeyValueStorage(Protocol):
    """Durable string store. Multi-key writes and deletes are all-or-nothing."""
    async def get_many(self, keys: Sequence[str]) -> dict[str, str | None]: ...
    async def set_many(self, items: Mapping[str, str]) -> None: ...
    async def delete_many(self, keys: Sequence[str]) -> None: ...


class AuthApi(Protocol):
    """Identity service calls made outside the authenticated interceptor."""
    async def login(self, identifier: str, password: str) -> TokenResponse: ...
    async def register(self, payload: Mapping[str, Any]) -> TokenResponse: ...
    async def verify_phone(self, phone: str, otp: str) -> TokenResponse: ...
    async def resend_otp(self, phone: str) -> None: ...
    async def refresh(self, refresh_token: str) -> TokenResponse: ...
    async def logout(self, access_token: str) -> None: ...


class ProfileApi(Protocol):
    """Profile-fetch collaborator (goes through the authenticated client)."""
    async def get_profile(self) -> Mapping[str, Any]: ...
