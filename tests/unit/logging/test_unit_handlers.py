# tests/unit/logging/test_unit_handlers.py — v1
"""Tests for logging/handlers.py — file rotation handler."""

from __future__ import annotations

import io
import logging
import sys

import pytest

from genflow.logging.context import ContextFilter
from genflow.logging.handlers import _parse_size, create_console_handler, create_rotating_handler


class TestParseSize:
    def test_bytes(self):
        assert _parse_size("200B") == 200

    def test_mb(self):
        assert _parse_size("10MB") == 10 * 1024 * 1024

    def test_kb(self):
        assert _parse_size("512KB") == 512 * 1024

    def test_gb(self):
        assert _parse_size("1GB") == 1024 * 1024 * 1024

    def test_case_insensitive(self):
        assert _parse_size("10mb") == 10 * 1024 * 1024

    def test_invalid_format(self):
        with pytest.raises(ValueError, match="Invalid size"):
            _parse_size("10bytes")

    def test_empty_string(self):
        with pytest.raises(ValueError):
            _parse_size("")


class TestCreateRotatingHandler:
    def test_creates_handler(self, tmp_path):
        handler = create_rotating_handler(tmp_path / "test.log", rotation="1MB", retention=5)
        try:
            assert handler.maxBytes == 1024 * 1024
            assert handler.backupCount == 5
        finally:
            handler.close()

    def test_creates_parent_dirs(self, tmp_path):
        handler = create_rotating_handler(tmp_path / "subdir" / "deep" / "test.log")
        try:
            assert (tmp_path / "subdir" / "deep").exists()
        finally:
            handler.close()

    def test_has_context_filter(self, tmp_path):
        handler = create_rotating_handler(tmp_path / "test.log")
        try:
            assert any(isinstance(f, ContextFilter) for f in handler.filters)
        finally:
            handler.close()


class TestCreateConsoleHandler:
    def test_defaults_to_stderr(self):
        handler = create_console_handler()
        assert handler.stream is sys.stderr
        assert any(isinstance(f, ContextFilter) for f in handler.filters)

    def test_custom_stream(self):
        stream = io.StringIO()
        handler = create_console_handler(stream)
        handler.emit(logging.LogRecord("genflow", logging.INFO, "", 0, "hello", (), None))
        assert "hello" in stream.getvalue()
