"""Tests for logging configuration module.

Verifies that logging configuration:
1. Drops credential-like fields
2. Never writes raw upload bytes or long label lists
3. Collapses the home directory
4. Produces valid JSON output
"""

from __future__ import annotations

import io
import logging
import sys
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import orjson
import pytest

from visionmodels.logging_config import (
    BLOCKED_FIELDS,
    JsonFormatter,
    SimpleFormatter,
    _sanitize_text,
    filter_fields,
    get_logger,
    setup_logging,
)


def make_record(msg: str, level: int = logging.INFO, **extra: object) -> logging.LogRecord:
    record = logging.LogRecord("visionmodels.test", level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


class TestBlockedFields:
    """Credential fields are dropped."""

    def test_blocked_fields_contents(self) -> None:
        assert {"api_key", "secret", "token", "password"} <= BLOCKED_FIELDS

    def test_exact_and_word_matches_removed(self) -> None:
        filtered = filter_fields(
            {"token": "t", "x_api_key_header": "v", "upload-password": "p", "backend": "RKNN"}
        )
        assert filtered == {"backend": "RKNN"}

    def test_case_insensitive(self) -> None:
        assert filter_fields({"API_KEY": "s", "Token": "t"}) == {}

    def test_words_containing_blocked_text_kept(self) -> None:
        filtered = filter_fields({"author": "me", "tokenizer": "bpe"})
        assert filtered == {"author": "me", "tokenizer": "bpe"}


class TestPlaceholders:
    """Raw upload data never reaches a log line."""

    @pytest.mark.parametrize(("key", "placeholder"), [("content", "[CONTENT]"), ("body", "[BODY]"), ("payload", "[PAYLOAD]")])
    def test_placeholder(self, key: str, placeholder: str) -> None:
        assert filter_fields({key: b"\x00\x01"}) == {key: placeholder}

    def test_bytes_summarised(self) -> None:
        assert filter_fields({"chunk": b"abcd"}) == {"chunk": "[bytes:4]"}

    def test_long_list_summarised(self) -> None:
        labels = [f"class{i}" for i in range(80)]
        assert filter_fields({"labels": labels}) == {"labels": "[list:80 items]"}

    def test_short_list_kept(self) -> None:
        assert filter_fields({"backends": ("RKNN", "COREML_FILE")}) == {"backends": ["RKNN", "COREML_FILE"]}

    def test_nested_dict_filtered(self) -> None:
        assert filter_fields({"outer": {"secret": "x", "n": 1}}) == {"outer": {"n": 1}}

    def test_depth_limited(self) -> None:
        nested: dict[str, object] = {"v": 1}
        for _ in range(6):
            nested = {"d": nested}
        result = filter_fields(nested)
        assert "max depth exceeded" in orjson.dumps(result).decode()


class TestSanitizeText:
    """Free-form text sanitization."""

    def test_home_collapsed(self) -> None:
        with patch("visionmodels.logging_config._home_prefix", return_value="/home/alice"):
            assert _sanitize_text("saved /home/alice/models/a.rknn") == "saved ~/models/a.rknn"

    def test_root_home_left_alone(self) -> None:
        with patch("visionmodels.logging_config._home_prefix", return_value="/"):
            assert _sanitize_text("/models/a.rknn") == "/models/a.rknn"

    def test_token_redacted(self) -> None:
        assert "abc123" not in _sanitize_text("token=abc123")

    def test_empty(self) -> None:
        assert _sanitize_text("") == ""

    def test_path_extra_collapsed(self) -> None:
        with patch("visionmodels.logging_config._home_prefix", return_value="/home/alice"):
            assert filter_fields({"path": Path("/home/alice/m")}) == {"path": "~/m"}


class TestJsonFormatter:
    """JSON output format."""

    def test_required_fields(self) -> None:
        line = JsonFormatter().format(make_record("Loaded artifact", backend="RKNN", label_count=3))
        data = orjson.loads(line)
        assert data["level"] == "INFO"
        assert data["logger"] == "visionmodels.test"
        assert data["msg"] == "Loaded artifact"
        assert data["backend"] == "RKNN"
        assert data["label_count"] == 3
        assert "file" not in data

    def test_warning_includes_location(self) -> None:
        data = orjson.loads(JsonFormatter().format(make_record("Skipping artifact", logging.WARNING)))
        assert data["line"] == 10
        assert data["file"].endswith(".py")

    def test_extra_cannot_override_base_fields(self) -> None:
        data = orjson.loads(JsonFormatter().format(make_record("m", level=logging.INFO, ts="fake")))
        assert data["ts"] != "fake"

    def test_exception_included(self) -> None:
        try:
            raise OSError("disk full")
        except OSError:
            record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
        data = orjson.loads(JsonFormatter().format(record))
        assert "disk full" in data["exc"]


class TestSimpleFormatter:
    """Human-readable output."""

    def test_format(self) -> None:
        line = SimpleFormatter().format(make_record("Installed artifact", backend="RKNN", token="t"))
        assert line.startswith("INFO     visionmodels.test: Installed artifact")
        assert "backend=RKNN" in line
        assert "token" not in line


class TestSetupLogging:
    """setup_logging wiring."""

    def test_json(self) -> None:
        stream = io.StringIO()
        setup_logging(level="DEBUG", json_format=True, stream=stream)
        get_logger("visionmodels.x").debug("hello", extra={"backend": "RKNN"})
        data = orjson.loads(stream.getvalue().strip())
        assert data["msg"] == "hello"

    def test_simple(self) -> None:
        stream = io.StringIO()
        setup_logging(json_format=False, stream=stream)
        get_logger("visionmodels.x").info("hello")
        assert "hello" in stream.getvalue()

    def test_level_respected(self) -> None:
        stream = io.StringIO()
        setup_logging(level=logging.WARNING, stream=stream)
        get_logger("visionmodels.x").info("quiet")
        assert stream.getvalue() == ""

    def test_replaces_handlers(self) -> None:
        setup_logging(stream=io.StringIO())
        setup_logging(stream=io.StringIO())
        assert len(logging.getLogger().handlers) == 1
