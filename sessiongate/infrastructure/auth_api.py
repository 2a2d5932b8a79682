"""Identity Service Client: wire calls for login, registration, OTP, refresh, logout and /me.

Invariants:
    - Transport failures -> NetworkError (timeout flagged); never retried here
    - login 400/401/403 -> InvalidCredentialsError, as is a blank identifier or password
      caught locally (no request sent)
    - register 400/409/422 -> ValidationError with the server's field errors unmodified
    - verify-phone 410 or an "expired" error code -> OtpExpiredError; other 4xx -> InvalidOtpError
    - resend-otp 4xx -> ValidationError
    - Any other non-2xx -> ApiError(status); 5xx messages are sanitized
    - A 2xx body that is not a JSON object -> ApiError(502)
    - Local schema failures are raised before any network call
    - Token values are never logged

Design Decisions:
    - AuthApiClient uses a plain httpx client, NOT the authenticated interceptor: a 401
      from /login must never trigger a refresh
    - ProfileApiClient goes through AuthenticatedClient because /me is an authenticated call
"""

import logging
from collections.abc import Mapping
from typing import Any

import httpx
from pydantic import ValidationError as SchemaValidationError

from sessiongate.core.errors import (
    ApiError, ErrorContext, InvalidCredentialsError, InvalidOtpError, NetworkError,
    OtpExpiredError, ValidationError,
)
from sessiongate.infrastructure.http_interceptor import AuthenticatedClient
from sessiongate.schemas.auth import (
    LoginRequest, RefreshRequest, RegisterRequest, TokenResponse, VerifyPhoneRequest,
)

logger = logging.getLogger(__name__)

_SERVER_ERROR_MESSAGE = "Something went wrong on our side. Please try again later."
_EXPIRED_CODES = frozenset({"otp_expired", "code_expired", "expired"})


# ─── Response helpers ────────────────────────────────────────────

def error_payload(response: httpx.Response) -> dict[str, Any]:
    """Parsed JSON error body, or {} when the body is not a JSON object."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def error_message(payload: Mapping[str, Any], default: str) -> str:
    for key in ("message", "detail", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return default


def field_errors(payload: Mapping[str, Any]) -> dict[str, Any]:
    errors = payload.get("errors")
    if isinstance(errors, dict):
        return errors
    detail = payload.get("detail")
    if isinstance(detail, (list, dict)):
        return {"detail": detail}
    return {}


def raise_for_api_error(response: httpx.Response, operation: str) -> None:
    """Generic non-2xx mapping shared by every client."""
    if response.is_success:
        return
    status = response.status_code
    payload = error_payload(response)
    context = ErrorContext(path=response.request.url.path, operation=operation)
    logger.warning(
        "%s failed with HTTP %d", operation, status,
        extra={"status_code": status, "path": context.path},
    )
    if status in (400, 422):
        raise ValidationError(
            error_message(payload, "Please check your input and try again"),
            field_errors(payload), context, http_status=status,
        )
    if status >= 500:
        raise ApiError(_SERVER_ERROR_MESSAGE, status, context)
    raise ApiError(error_message(payload, f"{operation} failed"), status, context)


def json_body(response: httpx.Response, operation: str) -> dict[str, Any]:
    """JSON object body of a 2xx response; anything else is a bad gateway."""
    context = ErrorContext(path=response.request.url.path, operation=operation)
    try:
        body = response.json()
    except ValueError as e:
        raise ApiError(f"{operation} response was not valid JSON", 502, context) from e
    if not isinstance(body, dict):
        raise ApiError(f"{operation} response was not a JSON object", 502, context)
    return body


def token_response(response: httpx.Response, operation: str) -> TokenResponse:
    try:
        return TokenResponse.model_validate(json_body(response, operation))
    except SchemaValidationError as e:
        raise ApiError(
            f"{operation} response was malformed", 502,
            ErrorContext(path=response.request.url.path, operation=operation),
        ) from e


def _schema_error(e: SchemaValidationError) -> ValidationError:
    errors = {
        ".".join(str(p) for p in err["loc"]) or "__root__": err["msg"]
        for err in e.errors()
    }
    return ValidationError(field_errors=errors, http_status=400)


# ─── Clients ─────────────────────────────────────────────────────

class AuthApiClient:
    """Unauthenticated identity-service endpoints."""

    def __init__(self, client: httpx.AsyncClient, refresh_timeout_seconds: float = 10.0):
        self._client = client
        self._refresh_timeout = refresh_timeout_seconds

    async def login(self, identifier: str, password: str) -> TokenResponse:
        try:
            body = LoginRequest(identifier=identifier, password=password)
        except SchemaValidationError as e:
            raise InvalidCredentialsError(
                "Enter your email/phone and password",
                ErrorContext(path="/login", operation="login"),
            ) from e
        response = await self._post("/login", body.model_dump(), "login")
        if response.status_code in (400, 401, 403):
            payload = error_payload(response)
            raise InvalidCredentialsError(
                error_message(payload, "Invalid email/phone or password"),
                ErrorContext(path="/login", operation="login"),
            )
        raise_for_api_error(response, "login")
        return token_response(response, "login")

    async def register(self, payload: Mapping[str, Any]) -> TokenResponse:
        try:
            body = RegisterRequest.model_validate(dict(payload))
        except SchemaValidationError as e:
            raise _schema_error(e) from e
        response = await self._post(
            "/register", body.model_dump(exclude_none=True), "register",
        )
        if response.status_code == 409:
            error = error_payload(response)
            raise ValidationError(
                error_message(error, "An account with these details already exists"),
                field_errors(error),
                ErrorContext(path="/register", operation="register"),
                http_status=409,
            )
        raise_for_api_error(response, "register")
        return self._tokens_or_empty(response, "register")

    async def verify_phone(self, phone: str, otp: str) -> TokenResponse:
        try:
            body = VerifyPhoneRequest(phone=phone, otp=otp)
        except SchemaValidationError as e:
            raise InvalidOtpError(
                "Enter the numeric code sent to your phone",
                ErrorContext(path="/verify-phone", operation="verify_phone"),
            ) from e
        response = await self._post("/verify-phone", body.model_dump(), "verify_phone")
        if 400 <= response.status_code < 500:
            payload = error_payload(response)
            context = ErrorContext(path="/verify-phone", operation="verify_phone")
            if response.status_code == 410 or _is_expired(payload):
                raise OtpExpiredError(context=context)
            raise InvalidOtpError(error_message(payload, "Invalid verification code"), context)
        raise_for_api_error(response, "verify_phone")
        return self._tokens_or_empty(response, "verify_phone")

    async def resend_otp(self, phone: str) -> None:
        response = await self._post("/resend-otp", {"phone": phone}, "resend_otp")
        if 400 <= response.status_code < 500:
            payload = error_payload(response)
            raise ValidationError(
                error_message(payload, "Unable to send a new code"),
                field_errors(payload),
                ErrorContext(path="/resend-otp", operation="resend_otp"),
                http_status=response.status_code,
            )
        raise_for_api_error(response, "resend_otp")

    async def refresh(self, refresh_token: str) -> TokenResponse:
        body = RefreshRequest(refresh_token=refresh_token)
        response = await self._post(
            "/refresh", body.model_dump(), "refresh", timeout=self._refresh_timeout,
        )
        raise_for_api_error(response, "refresh")
        return token_response(response, "refresh")

    async def logout(self, access_token: str) -> None:
        response = await self._post(
            "/logout", None, "logout",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        raise_for_api_error(response, "logout")

    async def _post(
        self, path: str, json: Any, operation: str, **kwargs: Any,
    ) -> httpx.Response:
        try:
            return await self._client.post(path, json=json, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(
                "Request timeout. Please try again.", timeout=True,
                context=ErrorContext(path=path, operation=operation),
            ) from e
        except httpx.TransportError as e:
            raise NetworkError(
                f"Unable to reach the identity service: {e}",
                context=ErrorContext(path=path, operation=operation),
            ) from e

    @staticmethod
    def _tokens_or_empty(response: httpx.Response, operation: str) -> TokenResponse:
        if not response.content:
            return TokenResponse()
        return token_response(response, operation)


def _is_expired(payload: Mapping[str, Any]) -> bool:
    for key in ("code", "error_code", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value.lower() in _EXPIRED_CODES:
            return True
    return False


class ProfileApiClient:
    """GET {auth}/me through the authenticated client."""

    def __init__(self, http: AuthenticatedClient, path: str = "/me"):
        self._http = http
        self._path = path

    async def get_profile(self) -> Mapping[str, Any]:
        response = await self._http.get(self._path)
        raise_for_api_error(response, "get_profile")
        return json_body(response, "get_profile")
