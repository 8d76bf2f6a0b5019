"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from app.core.logging import (
    RATE_LIMIT_EXCEEDED,
    JsonFormatter,
    SensitiveDataFilter,
    hash_identifier,
    log_security_event,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_session_tokens():
    """Ensure access tokens and cookies never reach the log output."""

    logger, stream = _capture("test_redaction")

    logger.info(
        "test_event",
        extra={
            "access_token": "eyJhbGciOi.secret",
            "cookie": "sb-access-token=another-secret",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()

    assert "eyJhbGciOi.secret" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_backend_keys_and_email():
    logger, stream = _capture("test_backend_redaction")

    logger.info(
        "backend_event",
        extra={
            "service_role_key": "service-secret",
            "email": "ada@example.com",
            "status_code": 200,
        },
    )

    output = stream.getvalue()

    assert "service-secret" not in output
    assert "ada@example.com" not in output
    assert "status_code" in output


def test_sensitive_filter_allows_safe_fields():
    """Verify safe fields pass through unmodified."""

    logger, stream = _capture("test_safe_fields")

    logger.info(
        "safe_event",
        extra={
            "request_id": "req-123",
            "route": "/api/whoami",
            "status": 200,
            "duration_ms": 150.5,
        },
    )

    output = stream.getvalue()

    assert "req-123" in output
    assert "/api/whoami" in output
    assert "200" in output
    assert "[REDACTED]" not in output


def test_sensitive_filter_redacts_nested_dicts():
    """Ensure nested sensitive fields are redacted."""

    logger, stream = _capture("test_nested")

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "Authorization": "Bearer secret-key",
                "user-agent": "pytest",
            },
            "safe_data": {
                "count": 5,
                "type": "test",
            },
        },
    )

    output = stream.getvalue()

    assert "secret-key" not in output
    assert "[REDACTED]" in output
    assert "pytest" in output
    assert "test" in output


def test_security_event_is_structured():
    logger, stream = _capture("app.security")

    log_security_event(
        RATE_LIMIT_EXCEEDED,
        endpoint_class="SEARCH",
        key_hash=hash_identifier("SEARCH:ip:203.0.113.7"),
        token="should-not-appear",
    )

    logger.handlers.clear()
    logger.propagate = True
    record = json.loads(stream.getvalue())

    assert record["message"] == "security_event"
    assert record["level"] == "warning"
    assert record["security_event"] == "RATE_LIMIT_EXCEEDED"
    assert record["endpoint_class"] == "SEARCH"
    assert "203.0.113.7" not in stream.getvalue()
    assert record["token"] == "[REDACTED]"


def test_hash_identifier_is_stable_and_short():
    assert hash_identifier("user:u1") == hash_identifier("user:u1")
    assert hash_identifier("user:u1") != hash_identifier("user:u2")
    assert len(hash_identifier("user:u1")) == 16
