"""
Structured logging configuration for visionmodels.

Provides one-JSON-object-per-line logging with log hygiene:
- credential-like fields are dropped
- raw upload bytes never reach a log line
- long lists (labels) are summarised
- the invoking user's home directory is collapsed to ~

Usage:
    from visionmodels.logging_config import setup_logging, get_logger

    setup_logging()  # Call once at startup
    logger = get_logger(__name__)
    logger.info("Loaded artifact", extra={"backend": "RKNN", "artifact": name})
"""

from __future__ import annotations

import logging
import re
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import orjson

# Attributes every LogRecord carries; anything else came in through extra=
RESERVED_RECORD_ATTRS: frozenset[str] = frozenset(
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

# Fields that must never appear in logs
BLOCKED_FIELDS: frozenset[str] = frozenset(
    {
        "api_key",
        "secret",
        "token",
        "password",
        "auth",
        "authorization",
        "bearer",
        "credential",
        "cookie",
    }
)

# Fields carrying raw upload data: value replaced with a placeholder
PLACEHOLDER_FIELDS: dict[str, str] = {
    "content": "[CONTENT]",
    "payload": "[PAYLOAD]",
    "body": "[BODY]",
    "data": "[DATA]",
}

MAX_LIST_ITEMS = 10
MAX_DEPTH = 3

_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\b(api[_-]?key|apikey)[=:]\s*['\"]?[\w\-]+['\"]?", re.I), "[API_KEY]"),
    (re.compile(r"\b(bearer|token)[=:\s]+['\"]?[\w\-\.]+['\"]?", re.I), "[TOKEN]"),
]


def _home_prefix() -> str:
    try:
        return str(Path.home())
    except RuntimeError:
        return ""


def _collapse_home(text: str, home: str) -> str:
    if not home or home == "/":
        return text
    return text.replace(home, "~")


def _sanitize_text(text: str) -> str:
    """Collapse the home directory and redact credential-looking tokens."""
    if not text:
        return text
    result = _collapse_home(text, _home_prefix())
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def _is_blocked(key: str) -> bool:
    # Match whole words only so e.g. "author" stays visible
    normalized = "_" + re.sub(r"[\-.]", "_", key.lower()) + "_"
    return any(f"_{blocked}_" in normalized for blocked in BLOCKED_FIELDS)


def _filter_value(value: Any, depth: int) -> Any:
    if isinstance(value, (bool, int, float, type(None))):
        return value
    if isinstance(value, str):
        return _sanitize_text(value)
    if isinstance(value, Path):
        return _sanitize_text(str(value))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"[bytes:{len(value)}]"
    if isinstance(value, (list, tuple, set, frozenset)):
        if len(value) > MAX_LIST_ITEMS:
            return f"[list:{len(value)} items]"
        return [_filter_value(item, depth) for item in value]
    if isinstance(value, dict):
        return filter_fields(value, _depth=depth + 1)
    return _sanitize_text(str(value))


def filter_fields(fields: dict[str, Any], *, _depth: int = 0) -> dict[str, Any]:
    """Apply log hygiene to structured extra fields.

    Nested dicts are filtered up to MAX_DEPTH levels.
    """
    if _depth > MAX_DEPTH:
        return {"_truncated": "max depth exceeded"}

    filtered: dict[str, Any] = {}
    for key, value in fields.items():
        if _is_blocked(key):
            continue
        placeholder = PLACEHOLDER_FIELDS.get(key.lower())
        if placeholder is not None:
            filtered[key] = placeholder
            continue
        filtered[key] = _filter_value(value, _depth)
    return filtered


def _extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in RESERVED_RECORD_ATTRS}


class JsonFormatter(logging.Formatter):
    """JSON log formatter for structured logging.

    Output format:
    {"ts":"2026-01-01T00:00:00.000+00:00","level":"INFO","logger":"module","msg":"...", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        log_dict: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": _sanitize_text(record.getMessage()),
        }

        if record.levelno >= logging.WARNING:
            log_dict["file"] = record.filename
            log_dict["line"] = record.lineno

        if record.exc_info:
            log_dict["exc"] = _sanitize_text(self.formatException(record.exc_info))

        extra = _extra_fields(record)
        if extra:
            for key, value in filter_fields(extra).items():
                log_dict.setdefault(key, value)

        return orjson.dumps(log_dict, default=str).decode("utf-8")


class SimpleFormatter(logging.Formatter):
    """Human-readable formatter for terminals and tests."""

    def format(self, record: logging.LogRecord) -> str:
        base = f"{record.levelname:8s} {record.name}: {_sanitize_text(record.getMessage())}"

        extra = _extra_fields(record)
        if extra:
            filtered = filter_fields(extra)
            if filtered:
                base = f"{base} | " + " ".join(f"{k}={v}" for k, v in filtered.items())

        if record.exc_info:
            base = f"{base}\n{_sanitize_text(self.formatException(record.exc_info))}"
        return base


def setup_logging(
    *,
    level: int | str = logging.INFO,
    json_format: bool = True,
    stream: Any = None,
) -> None:
    """Configure root logging. Call once at startup.

    Args:
        level: Log level (default INFO).
        json_format: Use JsonFormatter (default) or SimpleFormatter.
        stream: Output stream (default stderr).
    """
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonFormatter() if json_format else SimpleFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically get_logger(__name__))."""
    return logging.getLogger(name)
