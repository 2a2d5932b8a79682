"""Structured Logging: tests for the JSON formatter, token redaction and setup."""

import json
import logging
import sys

from sessiongate.infrastructure.observability import (
    JSONFormatter, TokenRedactionFilter, redact, setup_logging,
)


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        "sessiongate.test", logging.INFO, __file__, 1, "Session event: %s", ("x",), None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_base_fields():
    payload = json.loads(JSONFormatter().format(_record()))
    assert payload["level"] == "INFO"
    assert payload["logger"] == "sessiongate.test"
    assert payload["message"] == "Session event: x"
    assert "timestamp" in payload


def test_json_formatter_surfaces_extras():
    payload = json.loads(JSONFormatter().format(
        _record(event="session_ended", generation=3, reason="logout", unrelated="skip"),
    ))
    assert payload["event"] == "session_ended"
    assert payload["generation"] == 3
    assert payload["reason"] == "logout"
    assert "unrelated" not in payload


def test_json_formatter_omits_none_extras():
    payload = json.loads(JSONFormatter().format(_record(reason=None)))
    assert "reason" not in payload


def test_setup_logging_installs_handler():
    previous = logging.root.level
    handler = setup_logging("debug", "text")
    try:
        assert handler in logging.root.handlers
        assert logging.root.level == logging.DEBUG
        assert not isinstance(handler.formatter, JSONFormatter)
    finally:
        logging.root.removeHandler(handler)
        logging.root.setLevel(previous)


# ─── Redaction ───────────────────────────────────────────────────

def test_redact_bearer_header():
    assert redact("Authorization: Bearer abc.def-123") == "Authorization: Bearer [REDACTED]"


def test_redact_token_pairs():
    text = redact('{"access_token": "a1", "refresh_token": "r1", "user": 7}')
    assert "a1" not in text
    assert "r1" not in text
    assert '"user": 7' in text


def test_redact_leaves_plain_text():
    assert redact("Token refresh failed: timeout") == "Token refresh failed: timeout"


def test_filter_rewrites_message():
    record = logging.LogRecord(
        "sessiongate.test", logging.WARNING, __file__, 1, "sent %s", ("Bearer secret",), None,
    )
    assert TokenRedactionFilter().filter(record)
    assert record.getMessage() == "sent Bearer [REDACTED]"


def test_filter_redacts_exception_text():
    try:
        raise RuntimeError("refresh_token=leaky")
    except RuntimeError:
        record = logging.LogRecord(
            "sessiongate.test", logging.ERROR, __file__, 1, "boom", (), sys.exc_info(),
        )
    TokenRedactionFilter().filter(record)
    payload = json.loads(JSONFormatter().format(record))
    assert "leaky" not in payload["exception"]
