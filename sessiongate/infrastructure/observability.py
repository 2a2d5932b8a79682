"""Structured Logging: JSON output and token redaction for session-core logs.

Invariants:
    - Every record carries timestamp, level, logger and message
    - Session extras (event, generation, version, reason, status_code, ...) are
      surfaced as top-level JSON keys when present
    - Bearer credentials and token-looking key/value pairs never reach a handler
      unmasked, whichever module logged them

Design Decisions:
    - Redaction is a logging.Filter on the handler, not a convention callers must
      remember; exception text from httpx can carry request headers
    - setup_logging is called by open_session_core only; importing the package never
      touches logging configuration
"""

import json
import logging
import re
from datetime import datetime, timezone

_EXTRA_FIELDS = (
    "event", "generation", "version", "reason", "status_code",
    "error_code", "path", "method", "attempt",
)

_MASK = "[REDACTED]"
_SECRET_PATTERNS = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/]+=*", re.IGNORECASE),
    re.compile(r"""((?:access|refresh)_?token["']?\s*[:=]\s*["']?)[^"',\s}]+""", re.IGNORECASE),
)


def redact(text: str) -> str:
    for pattern in _SECRET_PATTERNS:
        text = pattern.sub(lambda m: m.group(1) + _MASK, text)
    return text


class TokenRedactionFilter(logging.Filter):
    """Masks credentials in the rendered message and exception text."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg, record.args = cleaned, None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = redact(record.exc_text)
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        log.update({
            key: record.__dict__[key]
            for key in _EXTRA_FIELDS
            if record.__dict__.get(key) is not None
        })
        if record.exc_text:
            log["exception"] = record.exc_text
        elif record.exc_info:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO", fmt: str = "json") -> logging.Handler:
    """Install a redacting root handler. Returns it so the caller can remove it."""
    handler = logging.StreamHandler()
    handler.addFilter(TokenRedactionFilter())
    if fmt == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
        ))
    logging.root.addHandler(handler)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))
    return handler
