# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for logging setup."""

import json
import logging
import re
import sys
import tempfile
from pathlib import Path

import pytest

from rubyprint.events import AnalysisEvent, EventBus, EventType
from rubyprint.logging_setup import StructuredFormatter, event_logger, log_filename, setup_logging


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Put the root logger's handlers and level back after each test."""
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


def _lines(log_file: Path):
    return [json.loads(line) for line in log_file.read_text().strip().split("\n") if line]


def test_setup_logging_creates_directory():
    """Test that setup_logging creates the log directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir) / ".rubyprint_logs"
        assert not log_dir.exists()

        setup_logging(log_dir=log_dir, console_output=False)

        assert log_dir.exists()
        assert log_dir.is_dir()


def test_setup_logging_creates_daily_log_file():
    """Test that setup_logging creates one dated log file."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir) / ".rubyprint_logs"

        log_file = setup_logging(log_dir=log_dir, console_output=False)

        assert list(log_dir.glob("*.log")) == [log_file]
        assert re.fullmatch(r"rubyprint_\d{8}\.log", log_file.name)
        assert log_file.name == log_filename()


def test_logging_produces_json():
    """Test that logs are written in JSON format."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir) / ".rubyprint_logs"

        log_file = setup_logging(log_dir=log_dir, log_level=logging.INFO, console_output=False)

        logger = logging.getLogger("test_logger")
        logger.info("Test message")

        log_lines = _lines(log_file)

        # Startup message + test message
        assert len(log_lines) >= 2
        for log_entry in log_lines:
            assert "timestamp" in log_entry
            assert log_entry["timestamp"].endswith("Z")
            assert "level" in log_entry
            assert "logger" in log_entry
            assert "message" in log_entry
        assert log_lines[-1]["message"] == "Test message"


def test_logging_levels():
    """Test that different log levels work correctly."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir) / ".rubyprint_logs"

        log_file = setup_logging(log_dir=log_dir, log_level=logging.WARNING, console_output=False)

        logger = logging.getLogger("test_logger")
        logger.debug("Debug message")  # Should not be logged
        logger.info("Info message")  # Should not be logged
        logger.warning("Warning message")  # Should be logged
        logger.error("Error message")  # Should be logged

        messages = [entry["message"] for entry in _lines(log_file)]

        assert "Warning message" in messages
        assert "Error message" in messages
        assert "Debug message" not in messages
        assert "Info message" not in messages


def test_setup_logging_replaces_handlers():
    """Test repeated setup does not stack handlers."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir) / ".rubyprint_logs"

        setup_logging(log_dir=log_dir, console_output=True)
        setup_logging(log_dir=log_dir, console_output=False)

        assert len(logging.getLogger().handlers) == 1


def test_structured_formatter_with_exception():
    """Test that exceptions are formatted correctly."""
    formatter = StructuredFormatter()

    try:
        raise ValueError("Test exception")
    except ValueError:
        record = logging.LogRecord(
            name="test",
            level=logging.ERROR,
            pathname="test.py",
            lineno=1,
            msg="An error occurred",
            args=(),
            exc_info=sys.exc_info(),
        )

        log_entry = json.loads(formatter.format(record))

        assert log_entry["level"] == "ERROR"
        assert log_entry["message"] == "An error occurred"
        assert "ValueError: Test exception" in log_entry["exception"]


def test_event_logger_writes_event_fields():
    """Test events reach the log with their fields as top-level keys."""
    with tempfile.TemporaryDirectory() as tmpdir:
        log_dir = Path(tmpdir) / ".rubyprint_logs"
        log_file = setup_logging(log_dir=log_dir, log_level=logging.DEBUG, console_output=False)

        bus = EventBus()
        bus.subscribe(event_logger())
        bus.publish(
            AnalysisEvent(
                event_type=EventType.CACHE_INVALIDATED,
                path="/p/seed.rb",
                detail={"reason": "modified"},
            )
        )

        entry = _lines(log_file)[-1]

        assert entry["logger"] == "rubyprint.events.trace"
        assert entry["message"] == f"{EventType.CACHE_INVALIDATED}: /p/seed.rb"
        assert entry["event_type"] == EventType.CACHE_INVALIDATED
        assert entry["path"] == "/p/seed.rb"
        assert entry["reason"] == "modified"
        assert "event_timestamp" in entry
