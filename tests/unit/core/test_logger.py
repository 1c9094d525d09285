"""
Unit tests for core.logger module.

Tests:
- format_kv_pairs() quoting, escaping and truncation
- Logger key=value mode via StructuredFormatter
- Logger JSON mode
- bind() context propagation
"""

import json
import logging

import pytest

from nwpublisher.core.logger import Logger, StructuredFormatter, format_kv_pairs


# ============================================================================
# format_kv_pairs Tests
# ============================================================================


class TestFormatKvPairs:
    """Tests for format_kv_pairs() utility function."""

    def test_empty_dict(self) -> None:
        assert format_kv_pairs({}) == ""

    def test_simple_values(self) -> None:
        assert format_kv_pairs({"relay": "wss://nos.lol", "count": 3}) == (
            " relay=wss://nos.lol count=3"
        )

    def test_value_with_spaces_quoted(self) -> None:
        assert format_kv_pairs({"note": "no route"}) == ' note="no route"'

    def test_empty_value_quoted(self) -> None:
        assert format_kv_pairs({"key": ""}) == ' key=""'

    def test_quotes_escaped(self) -> None:
        assert format_kv_pairs({"k": 'say "hi"'}) == ' k="say \\"hi\\""'

    def test_truncation(self) -> None:
        result = format_kv_pairs({"k": "x" * 20}, max_value_length=5)
        assert "xxxxx...<truncated 15 chars>" in result

    def test_custom_prefix(self) -> None:
        assert format_kv_pairs({"a": 1}, prefix="") == "a=1"


# ============================================================================
# Logger Tests
# ============================================================================


def _record(caplog: pytest.LogCaptureFixture) -> logging.LogRecord:
    assert caplog.records
    return caplog.records[-1]


class TestLoggerKeyValue:
    """Default key=value mode."""

    def test_structured_fields_attached(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.kv")
        with caplog.at_level(logging.INFO, logger="test.kv"):
            logger.info("relay_completed", relay="wss://nos.lol", published=2)
        record = _record(caplog)
        assert record.getMessage() == "relay_completed"
        assert record.structured_kv == {"relay": "wss://nos.lol", "published": "2"}

    def test_formatter_output(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.fmt")
        with caplog.at_level(logging.WARNING, logger="test.fmt"):
            logger.warning("plan_note", note="left unchanged")
        line = StructuredFormatter().format(_record(caplog))
        assert line == 'warning test.fmt plan_note note="left unchanged"'

    def test_formatter_plain_record(self) -> None:
        record = logging.LogRecord("plain", logging.INFO, __file__, 1, "hello %s", ("x",), None)
        assert StructuredFormatter().format(record) == "info plain hello x"

    def test_disabled_level_skipped(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.level")
        with caplog.at_level(logging.WARNING, logger="test.level"):
            logger.debug("hidden")
        assert not caplog.records

    def test_value_truncation(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.trunc", max_value_length=4)
        with caplog.at_level(logging.INFO, logger="test.trunc"):
            logger.info("m", value="abcdefgh")
        assert _record(caplog).structured_kv["value"].startswith("abcd...")


class TestLoggerJson:
    """JSON output mode."""

    def test_json_message(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.json", json_output=True)
        with caplog.at_level(logging.INFO, logger="test.json"):
            logger.info("sync_started", relays=3)
        payload = json.loads(_record(caplog).getMessage())
        assert payload["message"] == "sync_started"
        assert payload["relays"] == 3
        assert payload["level"] == "info"
        assert payload["service"] == "test.json"
        assert "timestamp" in payload


class TestLoggerBind:
    """bind() adds context to every record."""

    def test_bound_context(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.bind").bind(relay="wss://nos.lol")
        with caplog.at_level(logging.INFO, logger="test.bind"):
            logger.info("published", event_id="ab")
        assert _record(caplog).structured_kv == {"relay": "wss://nos.lol", "event_id": "ab"}

    def test_bind_keeps_name(self) -> None:
        assert Logger("x").bind(a=1).name == "x"

    def test_exception_includes_traceback(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = Logger("test.exc")
        with caplog.at_level(logging.ERROR, logger="test.exc"):
            try:
                raise RuntimeError("boom")
            except RuntimeError:
                logger.exception("failed")
        assert _record(caplog).exc_info is not None
