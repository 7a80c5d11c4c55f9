# tests/unit/logging/test_logger.py — v1
"""Tests for logging/logger.py — logger factory and formatters."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from genflow.logging.context import clear_context, set_run_context, set_step_context
from genflow.logging.logger import JsonFormatter, TextFormatter, get_logger, setup_logging


def _record(msg: str = "Hello", level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=level, pathname="", lineno=0,
        msg=msg, args=(), exc_info=None,
    )


class TestJsonFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        parsed = json.loads(JsonFormatter().format(_record()))
        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Hello"
        assert "timestamp" in parsed
        assert "context" not in parsed

    def test_format_with_context(self):
        set_run_context("run1", "/tmp/project")
        set_step_context("step-04-prd")
        parsed = json.loads(JsonFormatter().format(_record("test msg")))
        assert parsed["context"]["run_id"] == "run1"
        assert parsed["context"]["project"] == "/tmp/project"
        assert parsed["context"]["step"] == "step-04-prd"

    def test_format_extra_data(self):
        record = _record()
        record.data = {"attempts": 2}
        parsed = json.loads(JsonFormatter().format(record))
        assert parsed["data"] == {"attempts": 2}

    def test_format_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord(
                name="test", level=logging.ERROR, pathname="", lineno=0,
                msg="failed", args=(), exc_info=sys.exc_info(),
            )
        parsed = json.loads(JsonFormatter().format(record))
        assert "ValueError: boom" in parsed["exception"]


class TestTextFormatter:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_format_basic(self):
        output = TextFormatter().format(_record("Hello text"))
        assert "Hello text" in output
        assert "INFO" in output

    def test_format_includes_run_and_step(self):
        set_run_context("abc123")
        set_step_context("step-01-brainstorming")
        output = TextFormatter().format(_record())
        assert "<abc123>" in output
        assert "(step-01-brainstorming)" in output


class TestGetLogger:
    def test_returns_namespaced_logger(self):
        logger = get_logger("test_module")
        assert logger.name == "genflow.test_module"


class TestSetupLogging:
    def test_setup_json(self):
        setup_logging(level="DEBUG", log_format="json")
        root = logging.getLogger("genflow")
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_setup_text(self):
        setup_logging(level="INFO", log_format="text")
        root = logging.getLogger("genflow")
        assert root.level == logging.INFO
        assert isinstance(root.handlers[0].formatter, TextFormatter)

    def test_reinit_does_not_stack_handlers(self):
        setup_logging()
        setup_logging()
        assert len(logging.getLogger("genflow").handlers) == 1

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "genflow.log"
        root = setup_logging(log_file=log_file, rotation="1KB", retention=2)
        try:
            assert len(root.handlers) == 2
            root.info("written")
            for handler in root.handlers:
                handler.flush()
            assert "written" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers.clear()

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown log format"):
            setup_logging(log_format="xml")

    def test_console_writes_to_stderr(self, capsys):
        root = setup_logging(level="INFO")
        try:
            get_logger("cli").info("to stderr")
            captured = capsys.readouterr()
            assert "to stderr" not in captured.out
        finally:
            root.handlers.clear()
