"""Tests for sensitive data filtering and request correlation in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from servicekit.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    get_request_id,
    request_id_scope,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_api_keys():
    """Ensure SensitiveDataFilter redacts API key fields."""
    logger, stream = _capture("test_redaction")

    logger.info(
        "test_event",
        extra={
            "api_key": "sk-secret-123",
            "x-api-key": "another-secret",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()

    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_request_payloads():
    """Ensure request and response data never reach log output."""
    logger, stream = _capture("test_payload_redaction")

    logger.info(
        "executor.dispatch",
        extra={
            "request_data": {"name": "Ada Lovelace"},
            "response_data": [{"email": "ada@domain.com"}],
            "endpoint_name": "helloMember",
        },
    )

    output = stream.getvalue()

    assert "Ada Lovelace" not in output
    assert "ada@domain.com" not in output
    assert "helloMember" in output


def test_sensitive_filter_redacts_nested_dicts():
    logger, stream = _capture("test_nested")

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "authorization": "Bearer secret-token",
                "user-agent": "pytest",
            },
        },
    )

    output = stream.getvalue()

    assert "secret-token" not in output
    assert "[REDACTED]" in output
    assert "pytest" in output


def test_request_id_scope_tags_records():
    logger, stream = _capture("test_request_scope")

    with request_id_scope("req-outer"):
        logger.info("outer")
        with request_id_scope("req-inner"):
            logger.info("inner")
        assert get_request_id() == "req-outer"
    assert get_request_id() is None

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    assert [line["request_id"] for line in lines] == ["req-outer", "req-inner"]


def test_json_formatter_includes_exception():
    logger, stream = _capture("test_exc_info")

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("failed")

    record = json.loads(stream.getvalue())
    assert record["level"] == "error"
    assert "RuntimeError: boom" in record["exc_info"]
