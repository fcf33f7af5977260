"""
code-quality-tools — unit tests for observability logging

File: tests/unit/observability/test_logging.py

Purpose
- Validate JSON-line and text logging with per-module correlation metadata.

What this test file should cover
- JSON line validity and field layout.
- Correlation field propagation and restoration.
- Handler replacement on repeated setup.
- Rejection of unknown levels, formats and correlation keys.
"""

from __future__ import annotations

import io
import json
import logging
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest

from code_quality_tools.observability.logging import (
    LoggingConfig,
    configure_logging,
    correlation_scope,
    get_correlation_context,
    setup_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture
def logger_name() -> Iterator[str]:
    name = f"code_quality_tools.tests.logging.{uuid4().hex}"
    yield name
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


def _json_lines(stream: io.StringIO) -> list[dict[str, object]]:
    return [json.loads(line) for line in stream.getvalue().splitlines()]


def test_json_logging_carries_correlation_and_extra_fields(logger_name: str) -> None:
    stream = io.StringIO()
    logger = setup_logging(
        {"log_level": "DEBUG", "log_format": "json"}, stream=stream, logger_name=logger_name
    )

    with correlation_scope(module="app"), correlation_scope(tool="detekt"):
        logger.info("unit composed", extra={"units": 2, "paths": ("a", "b")})
    logger.debug("outside scope")

    first, second = _json_lines(stream)
    assert first["message"] == "unit composed"
    assert first["level"] == "INFO"
    assert first["logger"] == logger_name
    assert first["module"] == "app"
    assert first["tool"] == "detekt"
    assert first["fields"] == {"paths": ["a", "b"], "units": 2}
    assert str(first["timestamp"]).endswith("Z")
    assert "module" not in second
    assert "fields" not in second


def test_json_logging_includes_exception_text(logger_name: str) -> None:
    stream = io.StringIO()
    logger = setup_logging({"log_format": "json"}, stream=stream, logger_name=logger_name)

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("composition failed")

    (event,) = _json_lines(stream)
    assert event["level"] == "ERROR"
    assert "RuntimeError: boom" in str(event["exception"])


def test_text_format_and_level_filtering(logger_name: str) -> None:
    stream = io.StringIO()
    logger = setup_logging({"log_level": "warning"}, stream=stream, logger_name=logger_name)

    logger.info("hidden")
    logger.warning("lint requires runtime")

    assert stream.getvalue() == f"WARNING {logger_name}: lint requires runtime\n"


def test_repeated_setup_replaces_handler(logger_name: str) -> None:
    first = io.StringIO()
    second = io.StringIO()

    setup_logging(stream=first, logger_name=logger_name)
    logger = setup_logging(stream=second, logger_name=logger_name)
    logger.info("once")

    assert len(logger.handlers) == 1
    assert logger.propagate is False
    assert first.getvalue() == ""
    assert "once" in second.getvalue()


def test_correlation_scope_restores_previous_state() -> None:
    assert get_correlation_context() == {}

    with correlation_scope(module="app", tool="lint"):
        with correlation_scope(tool=None):
            assert get_correlation_context() == {"module": "app"}
        assert get_correlation_context() == {"module": "app", "tool": "lint"}

    assert get_correlation_context() == {}


def test_correlation_scope_rejects_unknown_key() -> None:
    with pytest.raises(ValueError, match="correlation key"):
        with correlation_scope(run_id="r-1"):
            pass


@pytest.mark.parametrize(
    ("config", "match"),
    [
        (LoggingConfig(level="LOUD"), "logging level"),
        (LoggingConfig(log_format="xml"), "log format"),
        (LoggingConfig(logger_name="  "), "logger_name"),
    ],
)
def test_invalid_configuration_is_rejected(config: LoggingConfig, match: str) -> None:
    with pytest.raises(ValueError, match=match):
        configure_logging(config)
