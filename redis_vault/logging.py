"""
Logging configuration: colored console output or JSON lines.

Usage:
    from redis_vault.logging import init_logging
    init_logging("info", "json")

Modules log through ``logging.getLogger(__name__)`` as usual.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TextIO

# ANSI color codes for console output
COLORS = {
    "DEBUG": "\033[36m",  # Cyan
    "INFO": "\033[32m",  # Green
    "WARNING": "\033[33m",  # Yellow
    "ERROR": "\033[31m",  # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}

# Module-specific colors for tags
TAG_COLORS = {
    "backup": "\033[94m",  # Blue
    "role": "\033[96m",  # Cyan
    "storage": "\033[93m",  # Yellow
    "retention": "\033[95m",  # Magenta
    "server": "\033[92m",  # Green
    "config": "\033[97m",  # White
}

DEFAULT_TAG_COLOR = "\033[37m"

NOISY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "google", "google.auth", "redis")

# LogRecord attributes that are not user supplied ``extra`` fields
_RECORD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys() | {"message", "asctime", "taskName"}
)


def _tag(name: str) -> str:
    """``redis_vault.storage.s3`` -> ``storage``."""
    parts = name.split(".")
    if parts[0] == "redis_vault" and len(parts) > 1:
        return parts[1]
    return parts[0]


class ColoredConsoleFormatter(logging.Formatter):
    """Formatter with colored levels and a short tag per module."""

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        tag = _tag(record.name)
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        if self.use_color:
            reset = COLORS["RESET"]
            level_str = f"{COLORS.get(record.levelname, '')}{record.levelname:8}{reset}"
            tag_str = f"{TAG_COLORS.get(tag, DEFAULT_TAG_COLOR)}[{tag}]{reset}"
        else:
            level_str = f"{record.levelname:8}"
            tag_str = f"[{tag}]"

        msg = f"{timestamp} {level_str} {tag_str} {record.getMessage()}"
        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)
        return msg


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log collectors."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and not key.startswith("_"):
                entry[key] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    name = level.upper()
    if name == "WARN":
        name = "WARNING"
    value = logging.getLevelName(name)
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level!r}")
    return value


def init_logging(level: str | int = "info", fmt: str = "text", stream: TextIO | None = None) -> logging.Handler:
    """Install a single console handler on the root logger.

    Calling this again replaces the previous handler, so the CLI can
    re-initialize once the config file has been read.
    """
    stream = stream if stream is not None else sys.stdout
    handler = logging.StreamHandler(stream)
    if fmt == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ColoredConsoleFormatter(use_color=stream.isatty()))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(parse_level(level))
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler
