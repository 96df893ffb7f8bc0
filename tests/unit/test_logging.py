"""Tests for the log formatters and configure_logging."""

from __future__ import annotations

import json
import logging

import pytest

from rolecrew.core.logging import JsonFormatter, TextFormatter, configure_logging


def _record(msg: str = "Step %s done", *args, **extra) -> logging.LogRecord:
    record = logging.LogRecord("rolecrew.orchestration.executor", logging.INFO, __file__, 1, msg, args or ("research",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_rolecrew_logger():
    logger = logging.getLogger("rolecrew")
    handlers, level, propagate = list(logger.handlers), logger.level, logger.propagate
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


class TestJsonFormatter:
    def test_emits_one_json_object(self):
        entry = json.loads(JsonFormatter().format(_record(pipeline_id="pipe_1")))
        assert entry["message"] == "Step research done"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "rolecrew.orchestration.executor"
        assert entry["pipeline_id"] == "pipe_1"

    def test_omits_missing_pipeline_id(self):
        entry = json.loads(JsonFormatter().format(_record()))
        assert "pipeline_id" not in entry


class TestTextFormatter:
    def test_includes_pipeline_id(self):
        line = TextFormatter().format(_record(pipeline_id="pipe_1"))
        assert "[INFO    ]" in line
        assert "(pipe_1)" in line
        assert line.endswith("- Step research done")


class TestConfigureLogging:
    def test_installs_single_handler(self, restore_rolecrew_logger):
        configure_logging("debug", "json")
        configure_logging("debug", "json")
        logger = restore_rolecrew_logger
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)
        assert logger.level == logging.DEBUG
