"""
node-config — unit tests for observability logging

File: tests/unit/observability/test_logging.py

Purpose
- Validate structlog configuration: JSON lines, console text, level
  filtering and context binding.

What this test file should cover
- JSON line validity and sorted keys.
- Level filtering and level parsing.
- Context fields bound with ``log_context``.
- Loader events reaching the configured stream.

Functional requirements
- Offline operation.

Non-functional requirements
- Deterministic and non-flaky.
"""

from __future__ import annotations

import io
import json
import logging
from typing import TYPE_CHECKING

import pytest
import structlog

from node_config.config.loader import ConfigLoader
from node_config.observability.logging import (
    LoggingConfig,
    log_context,
    reset_logging,
    setup_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture(autouse=True)
def _cleanup_logging() -> Iterator[None]:
    yield
    reset_logging()


def _json_lines(stream: io.StringIO) -> list[dict[str, object]]:
    return [json.loads(line) for line in stream.getvalue().splitlines() if line.strip()]


@pytest.mark.unit
def test_json_output_is_one_sorted_object_per_line() -> None:
    stream = io.StringIO()
    setup_logging(LoggingConfig(level="INFO", json_output=True, stream=stream))

    structlog.get_logger("node_config.tests").info("config_checked", path="node.json", count=2)

    (record,) = _json_lines(stream)
    assert record["event"] == "config_checked"
    assert record["level"] == "info"
    assert record["path"] == "node.json"
    assert record["count"] == 2
    assert "timestamp" in record
    line = stream.getvalue().strip()
    assert line == json.dumps(json.loads(line), sort_keys=True, ensure_ascii=False)


@pytest.mark.unit
def test_level_filtering_drops_lower_events() -> None:
    stream = io.StringIO()
    setup_logging(LoggingConfig(level="warning", json_output=True, stream=stream))
    logger = structlog.get_logger("node_config.tests")

    logger.debug("dropped_debug")
    logger.info("dropped_info")
    logger.warning("kept_warning")

    assert [record["event"] for record in _json_lines(stream)] == ["kept_warning"]


@pytest.mark.unit
def test_numeric_levels_are_accepted() -> None:
    stream = io.StringIO()
    setup_logging(LoggingConfig(level=logging.DEBUG, json_output=True, stream=stream))

    structlog.get_logger("node_config.tests").debug("kept_debug")

    assert [record["event"] for record in _json_lines(stream)] == ["kept_debug"]


@pytest.mark.unit
def test_unknown_level_is_rejected() -> None:
    with pytest.raises(ValueError, match="unsupported logging level"):
        setup_logging(LoggingConfig(level="chatty"))


@pytest.mark.unit
def test_console_output_is_plain_text() -> None:
    stream = io.StringIO()
    setup_logging(LoggingConfig(level="INFO", stream=stream))

    structlog.get_logger("node_config.tests").info("config_checked", path="node.json")

    text = stream.getvalue()
    assert "config_checked" in text
    assert "path=node.json" in text
    assert "\x1b[" not in text


@pytest.mark.unit
def test_log_context_binds_fields_inside_block_only() -> None:
    stream = io.StringIO()
    setup_logging(LoggingConfig(level="INFO", json_output=True, stream=stream))
    logger = structlog.get_logger("node_config.tests")

    with log_context(command="check"):
        logger.info("inside")
    logger.info("outside")

    inside, outside = _json_lines(stream)
    assert inside["command"] == "check"
    assert "command" not in outside


@pytest.mark.unit
def test_loader_events_reach_configured_stream() -> None:
    stream = io.StringIO()
    setup_logging(LoggingConfig(level="DEBUG", json_output=True, stream=stream))

    ConfigLoader().validate({"executor": None, "legacyOption": 1})

    records = _json_lines(stream)
    assert [record["event"] for record in records] == [
        "config_unknown_field_ignored",
        "config_load_rejected",
    ]
    assert records[0]["path"] == "legacyOption"
    assert records[1]["kinds"] == {"MissingRequiredField": 1}
