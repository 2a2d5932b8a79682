"""Session State: the opaque token pair and its pairing invariant.

Invariants:
    - A Session always holds BOTH tokens (non-empty strings); "no session" is None
    - check_token_pair accepts (None, None) or (str, str), nothing in between
    - Tokens are opaque: never decoded, never logged (repr masks them)
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from sessiongate.core.errors import CorruptedSessionError


@dataclass(frozen=True)
class Session:
    """Authenticated session: access/refresh token pair."""
    access_token: str = field(repr=False)
    refresh_token: str = field(repr=False)
    issued_at: datetime | None = None

    def __post_init__(self):
        if not self.access_token or not self.refresh_token:
            raise ValueError("Session requires both an access and a refresh token")

    @classmethod
    def issue(cls, access_token: str, refresh_token: str) -> "Session":
        return cls(access_token, refresh_token, datetime.now(timezone.utc))

    def rotated(self, access_token: str, refresh_token: str | None) -> "Session":
        """New session after refresh. Keeps the refresh token when none was rotated."""
        return Session.issue(access_token, refresh_token or self.refresh_token)


def check_token_pair(access: str | None, refresh: str | None) -> Session | None:
    """Build a Session from a persisted pair. Raises CorruptedSessionError on half a pair."""
    if not access and not refresh:
        return None
    if not access:
        raise CorruptedSessionError("access token")
    if not refresh:
        raise CorruptedSessionError("refresh token")
    return Session(access, refresh)
