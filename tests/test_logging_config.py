"""Tests for logging configuration module.

Verifies that logging configuration:
1. Filters out credentials (BLOCKED_FIELDS)
2. Never prints listen keys, whether in URLs, messages or extras
3. Normalizes URLs to paths and caps payload-sized fields
4. Produces valid JSON output
"""

from __future__ import annotations

import io
import json
import logging
import sys

import pytest

from binance_streams.logging_config import (
    BLOCKED_FIELDS,
    JsonFormatter,
    SimpleFormatter,
    _filter_log_record,
    _normalize_url,
    _sanitize_text,
    get_logger,
    setup_logging,
)

LISTEN_KEY = "Ab1" * 20


def make_record(
    msg: str = "test", level: int = logging.INFO, name: str = "test"
) -> logging.LogRecord:
    return logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )


class TestBlockedFields:
    """Test that sensitive fields are properly blocked."""

    def test_blocked_fields_not_empty(self) -> None:
        """BLOCKED_FIELDS should contain credential fields."""
        assert "api_key" in BLOCKED_FIELDS
        assert "secret" in BLOCKED_FIELDS
        assert "listen_key" in BLOCKED_FIELDS
        assert "signature" in BLOCKED_FIELDS

    def test_filter_removes_api_key(self) -> None:
        """api_key field should be removed from logs."""
        record = {"api_key": "supersecret123", "msg": "test"}
        filtered = _filter_log_record(record)
        assert "api_key" not in filtered
        assert "msg" in filtered

    def test_filter_removes_listen_key(self) -> None:
        record = {"listen_key": LISTEN_KEY, "stream": "marginData"}
        filtered = _filter_log_record(record)
        assert "listen_key" not in filtered
        assert filtered["stream"] == "marginData"

    def test_filter_removes_partial_matches(self) -> None:
        """Fields containing blocked words should be removed."""
        record = {
            "x_api_key_header": "value",
            "new_listen_key": "value",
            "request_signature": "value",
            "safe_field": "keep",
        }
        filtered = _filter_log_record(record)
        assert "x_api_key_header" not in filtered
        assert "new_listen_key" not in filtered
        assert "request_signature" not in filtered
        assert "safe_field" in filtered

    def test_filter_case_insensitive(self) -> None:
        """Blocked field check should be case-insensitive."""
        record = {"API_KEY": "secret", "ListenKey": "secret2", "X-MBX-APIKEY": "k"}
        filtered = _filter_log_record(record)
        assert filtered == {}


class TestSanitizeText:
    """Tests for _sanitize_text function."""

    def test_url_query_string_removed(self) -> None:
        """Combined stream lists in query strings should not reach the log."""
        result = _sanitize_text(
            "Dialing wss://fstream.binance.com/stream?streams=btcusdt@bookTicker/ethusdt@bookTicker"
        )
        assert "btcusdt" not in result
        assert "/stream" in result

    def test_listen_key_in_url_redacted(self) -> None:
        result = _sanitize_text(f"Dialing wss://margin-stream.binance.com/ws/{LISTEN_KEY}")
        assert LISTEN_KEY not in result
        assert "/ws/[LISTEN_KEY]" in result

    def test_bare_listen_key_redacted(self) -> None:
        result = _sanitize_text(f"Got key {LISTEN_KEY} from server")
        assert LISTEN_KEY not in result
        assert "[LISTEN_KEY]" in result

    def test_listen_key_assignment_redacted(self) -> None:
        result = _sanitize_text("keepalive listenKey=short-key-123")
        assert "short-key-123" not in result
        assert "[LISTEN_KEY]" in result

    def test_api_key_redacted(self) -> None:
        """API keys should be redacted."""
        result = _sanitize_text("Using X-MBX-APIKEY: vmPUZE6mv9SD5VNHk4HlWFsOr")
        assert "vmPUZE6mv9SD5VNHk4HlWFsOr" not in result
        assert "[API_KEY]" in result

    def test_signature_redacted(self) -> None:
        result = _sanitize_text("signature=c8db56825ae71d6d79447849e617115f4a920fa2acdcab2b")
        assert "c8db56825ae71d6d" not in result
        assert "[SIGNATURE]" in result

    def test_empty_string_unchanged(self) -> None:
        """Empty strings should be returned unchanged."""
        assert _sanitize_text("") == ""

    def test_safe_text_unchanged(self) -> None:
        """Text without sensitive data should be unchanged."""
        text = "Session open for btcusdt@bookTicker"
        assert _sanitize_text(text) == text


class TestHighCardinalityFields:
    """Test normalization of high-cardinality and payload fields."""

    def test_url_normalized_to_endpoint(self) -> None:
        """URL field should be normalized to endpoint (path only)."""
        record = {"url": "https://api.binance.com/sapi/v1/margin/listen-key?listenKey=abc"}
        filtered = _filter_log_record(record)
        assert "url" not in filtered
        assert filtered["endpoint"] == "/sapi/v1/margin/listen-key"

    def test_normalize_url_redacts_listen_key_path(self) -> None:
        result = _normalize_url(f"wss://margin-stream.binance.com/ws/{LISTEN_KEY}")
        assert result == "/ws/[LISTEN_KEY]"

    def test_normalize_url_preserves_stream_path(self) -> None:
        result = _normalize_url("wss://fstream.binance.com/ws/btcusdt@markPrice@1s")
        assert result == "/ws/btcusdt@markPrice@1s"

    def test_frame_redacted(self) -> None:
        record = {"frame": b'{"e":"bookTicker"}'}
        filtered = _filter_log_record(record)
        assert filtered["frame"] == "[FRAME]"

    def test_form_redacted(self) -> None:
        record = {"form": {"listenKey": LISTEN_KEY}}
        filtered = _filter_log_record(record)
        assert filtered["form"] == "[FORM]"

    def test_symbols_redacted(self) -> None:
        """symbols field should be redacted (could be large list)."""
        record = {"symbols": ["BTCUSDT", "ETHUSDT", "SOLUSDT"]}
        filtered = _filter_log_record(record)
        assert filtered["symbols"] == "[SYMBOLS_LIST]"

    def test_bytes_summarised(self) -> None:
        record = {"preview": b"x" * 200}
        filtered = _filter_log_record(record)
        assert filtered["preview"] == "[bytes:200]"


class TestFilterLogRecord:
    """Test the _filter_log_record function."""

    def test_safe_fields_preserved(self) -> None:
        """Safe fields should be preserved."""
        record = {
            "stream": "btcusdt@bookTicker",
            "old_state": "CONNECTING",
            "attempt": 3,
            "delay_ms": 1500,
            "raw": False,
        }
        filtered = _filter_log_record(record)
        assert filtered == record

    def test_list_capped_at_10(self) -> None:
        """Lists larger than 10 items should be summarized."""
        record = {"items": list(range(15))}
        filtered = _filter_log_record(record)
        assert filtered["items"] == "[list:15 items]"

    def test_small_list_preserved(self) -> None:
        """Lists with 10 or fewer items should be preserved."""
        record = {"items": [1, 2, 3]}
        filtered = _filter_log_record(record)
        assert filtered["items"] == [1, 2, 3]

    def test_nested_dict_filtered(self) -> None:
        """Nested dicts should have blocked fields removed."""
        record = {
            "request": {
                "endpoint": "/sapi/v1/margin/listen-key",
                "api_key": "secret",
                "timeout": 30,
            }
        }
        filtered = _filter_log_record(record)
        assert filtered["request"] == {"endpoint": "/sapi/v1/margin/listen-key", "timeout": 30}

    def test_depth_capped(self) -> None:
        record: dict[str, object] = {"a": {"b": {"c": {"d": {"e": 1}}}}}
        filtered = _filter_log_record(record)
        assert filtered["a"]["b"]["c"]["d"] == {"_truncated": "max depth exceeded"}


class TestJsonFormatter:
    """Test the JSON log formatter."""

    def test_produces_valid_json(self) -> None:
        """Output should be valid JSON with the base fields."""
        output = JsonFormatter().format(make_record("hello world", name="mylogger"))
        parsed = json.loads(output)
        assert parsed["level"] == "INFO"
        assert parsed["logger"] == "mylogger"
        assert parsed["msg"] == "hello world"
        assert "ts" in parsed
        assert "thread" in parsed

    def test_warning_includes_location(self) -> None:
        """WARNING+ logs should include file/line info."""
        record = make_record("warning message", level=logging.WARNING)
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["file"] == "test.py"
        assert parsed["line"] == 10

    def test_extra_fields_included(self) -> None:
        record = make_record()
        record.stream = "btcusdt@bookTicker"
        record.error_type = "DecodeError"
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["stream"] == "btcusdt@bookTicker"
        assert parsed["error_type"] == "DecodeError"

    def test_extra_fields_filtered(self) -> None:
        """Extra fields should be filtered for security."""
        record = make_record()
        record.listen_key = LISTEN_KEY
        record.safe_field = "keep"
        output = JsonFormatter().format(record)
        parsed = json.loads(output)
        assert "listen_key" not in parsed
        assert LISTEN_KEY not in output
        assert parsed["safe_field"] == "keep"

    def test_exception_sanitized(self) -> None:
        try:
            raise RuntimeError(f"dial failed for wss://margin-stream.binance.com/ws/{LISTEN_KEY}")
        except RuntimeError:
            record = logging.LogRecord(
                name="test",
                level=logging.ERROR,
                pathname="test.py",
                lineno=10,
                msg="boom",
                args=(),
                exc_info=sys.exc_info(),
            )
        output = JsonFormatter().format(record)
        assert LISTEN_KEY not in output
        assert "RuntimeError" in json.loads(output)["exc"]


class TestSimpleFormatter:
    """Test the simple human-readable formatter."""

    def test_basic_format(self) -> None:
        output = SimpleFormatter().format(make_record("hello"))
        assert "INFO" in output
        assert "hello" in output

    def test_extra_fields_appended(self) -> None:
        record = make_record("message")
        record.attempt = 3
        output = SimpleFormatter().format(record)
        assert "attempt=3" in output


class TestSetupLogging:
    """Test the setup_logging function."""

    def test_setup_logging_json(self) -> None:
        """setup_logging with json_format=True should use JsonFormatter."""
        stream = io.StringIO()
        setup_logging(json_format=True, stream=stream)

        logger = get_logger("test_json")
        logger.info("test message", extra={"key": "value"})

        parsed = json.loads(stream.getvalue().strip())
        assert parsed["msg"] == "test message"
        assert parsed["key"] == "value"

    def test_setup_logging_simple(self) -> None:
        """setup_logging with json_format=False should use SimpleFormatter."""
        stream = io.StringIO()
        setup_logging(json_format=False, stream=stream)

        get_logger("test_simple").info("simple test")

        output = stream.getvalue()
        assert "simple test" in output
        with pytest.raises(json.JSONDecodeError):
            json.loads(output.strip())

    def test_setup_logging_level(self) -> None:
        """setup_logging should respect log level."""
        stream = io.StringIO()
        setup_logging(level=logging.WARNING, json_format=False, stream=stream)

        logger = get_logger("test_level")
        logger.info("info message")
        logger.warning("warning message")

        output = stream.getvalue()
        assert "info message" not in output
        assert "warning message" in output
