# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Structured logging setup for rubyprint."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from rubyprint.events import AnalysisEvent, Subscriber

DEFAULT_LOG_DIRNAME = ".rubyprint_logs"

EVENTS_LOGGER_NAME = "rubyprint.events.trace"


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add any extra fields
        extra_fields = getattr(record, "extra_fields", None)
        if isinstance(extra_fields, dict):
            log_data.update(extra_fields)

        return json.dumps(log_data)


def log_filename() -> str:
    """Daily log file name, e.g. ``rubyprint_20250101.log``."""
    return f"rubyprint_{datetime.now(timezone.utc).strftime('%Y%m%d')}.log"


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: int = logging.INFO,
    console_output: bool = True,
) -> Path:
    """Set up structured logging for the application.

    Args:
        log_dir: Directory for log files. If None, uses .rubyprint_logs/
        log_level: Logging level (default: INFO)
        console_output: Whether to also output to console (default: True)

    Returns:
        Path of the log file written by the file handler.
    """
    if log_dir is None:
        log_dir = Path.cwd() / DEFAULT_LOG_DIRNAME

    log_dir.mkdir(parents=True, exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove any existing handlers
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    # File handler with structured JSON logging
    log_file = log_dir / log_filename()
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(file_handler)

    # Console handler with human-readable format (if enabled)
    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(log_level)
        console_formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        console_handler.setFormatter(console_formatter)
        root_logger.addHandler(console_handler)

    logging.info(f"Logging initialized. Log directory: {log_dir}")
    return log_file


def event_logger(level: int = logging.DEBUG) -> Subscriber:
    """Build an EventBus subscriber that writes each event to the log.

    Event fields travel as ``extra_fields`` so StructuredFormatter emits them
    as top-level JSON keys.

    Usage:
        bus.subscribe(event_logger())
    """
    trace = logging.getLogger(EVENTS_LOGGER_NAME)

    def _log(event: AnalysisEvent) -> None:
        trace.log(
            level,
            f"{event.event_type}: {event.path}",
            extra={
                "extra_fields": {
                    "event_type": event.event_type,
                    "path": event.path,
                    "event_timestamp": event.timestamp,
                    **event.detail,
                }
            },
        )

    return _log
