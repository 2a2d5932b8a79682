"""Token Store: durable persistence of the token pair and cached profile snapshot.

Invariants:
    - set_tokens writes both tokens in one backend call, or neither
    - After clear_all both token getters return None; clear_all is idempotent
    - Missing keys read as None, never raise
    - get_tokens raises CorruptedSessionError when exactly one token is present
    - An unreadable cached profile reads as None (and is logged, not raised)
    - SessionManager is the only writer

Design Decisions:
    - Three keys sharing one prefix (<prefix>_access_token, <prefix>_refresh_token,
      <prefix>_user_data), deleted together by clear_all
"""

import json
import logging
from dataclasses import dataclass

from sessiongate.core.profile import UserProfile, normalize_profile
from sessiongate.core.repository_protocols import KeyValueStorage
from sessiongate.core.session_state import Session, check_token_pair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreKeys:
    access_token: str
    refresh_token: str
    user_data: str

    @classmethod
    def with_prefix(cls, prefix: str) -> "StoreKeys":
        return cls(
            access_token=f"{prefix}_access_token",
            refresh_token=f"{prefix}_refresh_token",
            user_data=f"{prefix}_user_data",
        )

    def all(self) -> tuple[str, str, str]:
        return (self.access_token, self.refresh_token, self.user_data)


class TokenStore:
    """Reads and writes the persisted session layout through a KeyValueStorage."""

    def __init__(self, storage: KeyValueStorage, prefix: str = "sessiongate"):
        self._storage = storage
        self.keys = StoreKeys.with_prefix(prefix)

    async def set_tokens(self, access_token: str, refresh_token: str) -> None:
        if not access_token or not refresh_token:
            raise ValueError("set_tokens requires both tokens")
        await self._storage.set_many({
            self.keys.access_token: access_token,
            self.keys.refresh_token: refresh_token,
        })

    async def get_access_token(self) -> str | None:
        return await self._get(self.keys.access_token)

    async def get_refresh_token(self) -> str | None:
        return await self._get(self.keys.refresh_token)

    async def get_tokens(self) -> Session | None:
        """Read the pair in one call. Raises CorruptedSessionError on half a pair."""
        values = await self._storage.get_many(
            [self.keys.access_token, self.keys.refresh_token],
        )
        return check_token_pair(
            values.get(self.keys.access_token) or None,
            values.get(self.keys.refresh_token) or None,
        )

    async def set_profile(self, profile: UserProfile) -> None:
        await self._storage.set_many({
            self.keys.user_data: json.dumps(profile.to_storage()),
        })

    async def get_profile(self) -> UserProfile | None:
        blob = await self._get(self.keys.user_data)
        if blob is None:
            return None
        try:
            return normalize_profile(json.loads(blob))
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning("Discarding unreadable cached profile: %s", e)
            return None

    async def clear_all(self) -> None:
        await self._storage.delete_many(list(self.keys.all()))

    async def _get(self, key: str) -> str | None:
        values = await self._storage.get_many([key])
        return values.get(key) or None
