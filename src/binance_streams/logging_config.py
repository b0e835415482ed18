"""
Structured logging configuration for binance-streams.

Provides JSON-formatted structured logging with:
- Secret filtering (API keys, listen keys, signatures never reach a log line)
- URL normalisation (query strings and listen-key path segments dropped)
- Bounded field sizes (no raw frame payloads, capped lists)

Usage:
    from binance_streams.logging_config import setup_logging, get_logger

    setup_logging()  # Call once at startup
    logger = get_logger(__name__)
    logger.info("message", extra={"key": "value"})
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

# Matches URLs in free-form text: https://..., wss://...
_URL_PATTERN = re.compile(r"((?:https?|wss?)://[^\s\"'<>]+)")
# Binance listen keys are 60 alphanumeric characters
_LISTEN_KEY_PATTERN = re.compile(r"\b[A-Za-z0-9]{60}\b")
_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(r"\b(api[_-]?key|apikey|x-mbx-apikey)[=:]\s*['\"]?[\w\-]+['\"]?", re.I),
        "[API_KEY]",
    ),
    (re.compile(r"\b(listen[_-]?key|listenkey)[=:]\s*['\"]?[\w\-]+['\"]?", re.I), "[LISTEN_KEY]"),
    (re.compile(r"\b(signature)[=:]\s*['\"]?[\w\-]+['\"]?", re.I), "[SIGNATURE]"),
    (_LISTEN_KEY_PATTERN, "[LISTEN_KEY]"),
]

# Fields that should NEVER appear in logs
BLOCKED_FIELDS: frozenset[str] = frozenset(
    {
        "api_key",
        "apikey",
        "secret",
        "listen_key",
        "listenkey",
        "signature",
        "password",
        "authorization",
        "x-mbx-apikey",
    }
)

# Fields replaced by a placeholder (size or content risk)
REDACTED_FIELDS: dict[str, str] = {
    "frame": "[FRAME]",
    "payload": "[PAYLOAD]",
    "body": "[BODY]",
    "symbols": "[SYMBOLS_LIST]",
    "form": "[FORM]",
}

# LogRecord attributes that are not user-supplied extras
_RECORD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "message",
        "taskName",
    }
)

_MAX_LIST_ITEMS = 10
_MAX_DEPTH = 3


def _normalize_url(url: str) -> str:
    """Reduce a URL to its path, with listen keys redacted."""
    path = urlsplit(url).path or "/"
    return _LISTEN_KEY_PATTERN.sub("[LISTEN_KEY]", path)


def _sanitize_url_in_text(match: re.Match[str]) -> str:
    path = _normalize_url(match.group(1))
    return path if path != "/" else "[URL]"


def _sanitize_text(text: str) -> str:
    """Sanitize free-form text (msg, exc).

    Removes/normalizes:
    - URLs -> path only (query strings carry stream lists and signatures)
    - API keys, listen keys, signatures -> placeholders
    """
    if not text:
        return text

    result = _URL_PATTERN.sub(_sanitize_url_in_text, text)
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def _filter_log_record(record: dict[str, Any], *, _depth: int = 0) -> dict[str, Any]:
    """Filter secret and oversized fields from log extras.

    Recursively filters nested dicts up to depth 3.
    """
    if _depth > _MAX_DEPTH:
        return {"_truncated": "max depth exceeded"}

    filtered: dict[str, Any] = {}

    for key, value in record.items():
        key_lower = key.lower()

        if key_lower in BLOCKED_FIELDS or any(blocked in key_lower for blocked in BLOCKED_FIELDS):
            continue

        if key_lower == "url" and isinstance(value, str):
            filtered["endpoint"] = _normalize_url(value)
            continue

        if key_lower in REDACTED_FIELDS:
            filtered[key] = REDACTED_FIELDS[key_lower]
            continue

        if isinstance(value, (int, float, bool, type(None))):
            filtered[key] = value
        elif isinstance(value, str):
            filtered[key] = _sanitize_text(value)
        elif isinstance(value, (bytes, bytearray)):
            filtered[key] = f"[bytes:{len(value)}]"
        elif isinstance(value, (list, tuple)):
            if len(value) <= _MAX_LIST_ITEMS:
                filtered[key] = list(value)
            else:
                filtered[key] = f"[list:{len(value)} items]"
        elif isinstance(value, dict):
            filtered[key] = _filter_log_record(value, _depth=_depth + 1)
        else:
            filtered[key] = _sanitize_text(str(value))

    return filtered


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS}


class JsonFormatter(logging.Formatter):
    """JSON log formatter, one object per line.

    Output format:
    {"ts":"2024-01-01T00:00:00.000+00:00","level":"INFO","logger":"module",
     "thread":"binance-stream[btcusdt@bookTicker]","msg":"...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            # Sessions run on named threads; keep the name for correlation
            "thread": record.threadName,
            "msg": _sanitize_text(record.getMessage()),
        }

        if record.levelno >= logging.WARNING:
            log_dict["file"] = record.filename
            log_dict["line"] = record.lineno

        if record.exc_info:
            log_dict["exc"] = _sanitize_text(self.formatException(record.exc_info))

        extra = _extras(record)
        if extra:
            log_dict.update(_filter_log_record(extra))

        return json.dumps(log_dict, default=str, ensure_ascii=False)


class SimpleFormatter(logging.Formatter):
    """Human-readable formatter for development and tests."""

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname:8s} {record.name}: {_sanitize_text(record.getMessage())}"

        extra = _extras(record)
        if extra:
            filtered = _filter_log_record(extra)
            if filtered:
                extra_str = " ".join(f"{k}={v}" for k, v in filtered.items())
                base = f"{base} | {extra_str}"

        if record.exc_info:
            base = f"{base}\n{_sanitize_text(self.formatException(record.exc_info))}"

        return base


def setup_logging(
    *,
    level: int | str = logging.INFO,
    json_format: bool = True,
    stream: Any = None,
) -> None:
    """Configure structured logging for the application.

    Call once at application startup.

    Args:
        level: Log level (default INFO).
        json_format: Use JSON formatter (default True for production).
        stream: Output stream (default stderr).
    """
    if stream is None:
        stream = sys.stderr

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter() if json_format else SimpleFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    # Suppress noisy third-party loggers
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically for __name__)."""
    return logging.getLogger(name)
