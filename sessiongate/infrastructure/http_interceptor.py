"""Authenticated HTTP Client: bearer-token attachment with one refresh-and-retry on 401.

Invariants:
    - Authorization: Bearer <token> attached whenever an access token is stored;
      without one the request is sent unauthenticated (never blocked locally)
    - On 401 the original request is resent AT MOST once per call
    - No refresh when another caller already rotated the token since this request was
      sent: the retry uses the current token directly
    - Refresh failure propagates SessionExpiredError; a 401 on the retry raises
      RequestUnauthorizedError
    - Transport failures raise NetworkError and are not retried
    - Non-401 responses are returned untouched; callers map them

Design Decisions:
    - Wrapper over httpx.AsyncClient with explicit methods, same shape as the other
      resilient clients in infrastructure/
    - The refresher is any object with `async refresh() -> Session`, so this module does
      not import the services layer
"""

import logging
from typing import Any, Protocol

import httpx

from sessiongate.core.errors import ErrorContext, NetworkError, RequestUnauthorizedError
from sessiongate.core.session_state import Session
from sessiongate.infrastructure.token_store import TokenStore

logger = logging.getLogger(__name__)


class TokenRefresher(Protocol):
    async def refresh(self) -> Session: ...


class AuthenticatedClient:
    """httpx client that authenticates outbound calls and recovers from expired tokens."""

    def __init__(
        self, client: httpx.AsyncClient, tokens: TokenStore, refresher: TokenRefresher,
    ):
        self._client = client
        self._tokens = tokens
        self._refresher = refresher

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        request = self._client.build_request(method, url, **kwargs)
        token = await self._tokens.get_access_token()
        response = await self._send(request, token)
        if response.status_code != 401:
            return response

        logger.info(
            "Received 401, refreshing session",
            extra={"path": request.url.path, "method": method},
        )
        await response.aclose()
        fresh = await self._fresh_token(token)  # raises SessionExpiredError
        retry = await self._send(request, fresh)
        if retry.status_code == 401:
            await retry.aclose()
            logger.warning(
                "Request still unauthorized after refresh",
                extra={"path": request.url.path, "method": method, "attempt": 2},
            )
            raise RequestUnauthorizedError(
                ErrorContext(path=request.url.path, operation=method),
            )
        return retry

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def patch(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PATCH", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _fresh_token(self, sent: str | None) -> str:
        current = await self._tokens.get_access_token()
        if current and current != sent:
            return current
        session = await self._refresher.refresh()
        return session.access_token

    async def _send(self, request: httpx.Request, token: str | None) -> httpx.Response:
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        elif "Authorization" in request.headers:
            del request.headers["Authorization"]
        try:
            return await self._client.send(request)
        except httpx.TimeoutException as e:
            raise NetworkError(
                "Request timeout. Please try again.", timeout=True,
                context=ErrorContext(path=request.url.path, operation=request.method),
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(
                f"Network error: {e}",
                context=ErrorContext(path=request.url.path, operation=request.method),
            ) from e
