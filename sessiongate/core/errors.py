"""Error Hierarchy: typed, categorized exceptions for every session-core failure mode.

Invariants:
    - Every error has a code (str), category (ErrorCategory), severity (ErrorSeverity)
    - Caller errors (400-level) pass through unchanged; the core resolves only
      SessionExpiredError and CorruptedSessionError itself
    - to_response() produces the envelope the UI error handlers consume
    - Token values never appear in messages or context

Design Decisions:
    - Single hierarchy with SessionGateError base: one except clause catches everything
      the core can raise
    - ErrorContext as dataclass: observability fields without coupling to logging
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from datetime import datetime, timezone


class ErrorSeverity(str, Enum):
    """Error severity for observability and client handling."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """High-level error categories for routing and handling."""
    AUTHENTICATION = "authentication"
    VALIDATION = "validation"
    SESSION = "session"
    NETWORK = "network"
    EXTERNAL_API = "external_api"
    STORAGE = "storage"


@dataclass
class ErrorContext:
    """Rich context for error observability and debugging."""
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    path: str | None = None
    operation: str | None = None
    generation: int | None = None
    user_message: str | None = None
    debug_info: dict[str, Any] | None = None


class SessionGateError(Exception):
    """Base exception for all sessiongate errors."""

    def __init__(
        self,
        message: str,
        code: str,
        category: ErrorCategory,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: ErrorContext | None = None,
        http_status: int = 500,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.http_status = http_status

    def to_response(self) -> dict:
        """Convert to the standardized error envelope."""
        return {
            "error": {
                "code": self.code,
                "message": self.context.user_message or self.message,
                "category": self.category.value,
                "severity": self.severity.value,
                "timestamp": self.context.timestamp.isoformat(),
                "context": {
                    "path": self.context.path,
                    "operation": self.context.operation,
                },
            }
        }


# ─── Caller errors (surfaced verbatim) ──────────────────────────

class InvalidCredentialsError(SessionGateError):
    """Login rejected by the identity service."""
    def __init__(
        self, message: str = "Invalid email/phone or password",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "INVALID_CREDENTIALS", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 401,
        )


class InvalidOtpError(SessionGateError):
    """Phone verification code rejected."""
    def __init__(
        self, message: str = "Invalid verification code",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "INVALID_OTP", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 400,
        )


class OtpExpiredError(SessionGateError):
    """Phone verification code expired; a new one must be requested."""
    def __init__(
        self, message: str = "Verification code expired. Request a new code.",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "OTP_EXPIRED", ErrorCategory.AUTHENTICATION,
            ErrorSeverity.WARNING, context, 410,
        )


class ValidationError(SessionGateError):
    """Server-side field validation failed. field_errors are passed through as-is."""
    def __init__(
        self,
        message: str = "Please check your input and try again",
        field_errors: dict[str, Any] | None = None,
        context: ErrorContext | None = None,
        http_status: int = 422,
    ):
        super().__init__(
            message, "VALIDATION_ERROR", ErrorCategory.VALIDATION,
            ErrorSeverity.WARNING, context, http_status,
        )
        self.field_errors = field_errors or {}

    def to_response(self) -> dict:
        response = super().to_response()
        response["error"]["field_errors"] = self.field_errors
        return response


class ApiError(SessionGateError):
    """Non-success HTTP status not covered by a more specific error."""
    def __init__(
        self, message: str, status_code: int, context: ErrorContext | None = None,
    ):
        severity = ErrorSeverity.CRITICAL if status_code >= 500 else ErrorSeverity.ERROR
        super().__init__(
            message, "API_ERROR", ErrorCategory.EXTERNAL_API,
            severity, context, status_code,
        )
        self.status_code = status_code


class RequestUnauthorizedError(ApiError):
    """Request still rejected with 401 after one refresh-and-retry."""
    def __init__(self, context: ErrorContext | None = None):
        super().__init__(
            "Request was rejected after refreshing the session", 401, context,
        )
        self.code = "REQUEST_UNAUTHORIZED"


class NetworkError(SessionGateError):
    """Transport failure (timeout, DNS, connection reset). Never retried here."""
    def __init__(
        self, message: str, timeout: bool = False, context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "TIMEOUT" if timeout else "NETWORK_ERROR", ErrorCategory.NETWORK,
            ErrorSeverity.ERROR, context, 503,
        )
        self.timeout = timeout


# ─── Session errors (resolved locally) ──────────────────────────

class SessionExpiredError(SessionGateError):
    """Session could not be refreshed; the user must log in again."""
    def __init__(
        self, message: str = "Your session has expired. Please log in again.",
        context: ErrorContext | None = None,
    ):
        super().__init__(
            message, "SESSION_EXPIRED", ErrorCategory.SESSION,
            ErrorSeverity.WARNING, context, 401,
        )


class CorruptedSessionError(SessionGateError):
    """Exactly one of the two tokens is persisted. Cleared, treated as logged out."""
    def __init__(self, missing: str, context: ErrorContext | None = None):
        super().__init__(
            f"Persisted session is missing its {missing}",
            "CORRUPTED_SESSION", ErrorCategory.SESSION,
            ErrorSeverity.WARNING, context, 401,
        )
        self.missing = missing


# ─── Infrastructure errors ──────────────────────────────────────

class StorageError(SessionGateError):
    """Durable session store operation failed."""
    def __init__(self, message: str, operation: str, context: ErrorContext | None = None):
        super().__init__(
            f"Session store {operation} failed: {message}",
            "STORAGE_ERROR", ErrorCategory.STORAGE,
            ErrorSeverity.CRITICAL, context, 503,
        )
        self.operation = operation
