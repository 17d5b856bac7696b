# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logger for matrixci.

Every log entry is a single JSON line with a timestamp, a level, the source
module and the message. Command output from the hooks never goes through
here; it lands in the per-entry log files the runner opens.

How this works:
  - Python's standard `logging` module does the plumbing, with the default
    formatter replaced by JsonFormatter.
  - A stdout handler is always attached, a file handler optionally.
  - `get_logger` is the only way to create loggers in the package.

Example line:
  {"ts": "2026-...", "level": "INFO", "module": "matrixci.pipeline.runner", "msg": "Entry finished", "entry": "1-arm64"}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

_STANDARD_ATTRS = frozenset({
    "name",
    "msg",
    "args",
    "created",
    "relativeCreated",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "pathname",
    "filename",
    "module",
    "levelno",
    "levelname",
    "processName",
    "process",
    "threadName",
    "thread",
    "message",
    "msecs",
    "taskName",
})


class JsonFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Mandatory fields:
      ts     — ISO 8601 UTC timestamp
      level  — log level name
      module — the logger name
      msg    — the formatted message string

    Anything passed through `extra=` is merged in as additional context, which
    is how the runner attaches entry ids, stage names and exit codes.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _resolve_log_level(level_name: str) -> int:
    """Turn a level name string into the corresponding logging constant."""
    upper = level_name.upper()
    if upper not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    return getattr(logging, upper)


def get_logger(
    name: str,
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Create a structured JSON logger.

    Args:
        name: Logger name, typically __name__ of the calling module.
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
        log_file: Optional path to a log file. If provided, logs go to both
                  stdout and the file.

    Returns:
        A configured logging.Logger that outputs structured JSON.
    """
    logger = logging.getLogger(name)
    level = _resolve_log_level(log_level)
    logger.setLevel(level)

    # get_logger gets called repeatedly for the same name (module import and
    # CLI setup), so don't stack handlers.
    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    formatter = JsonFormatter()

    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setLevel(level)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def set_package_log_level(log_level: str) -> None:
    """
    Apply a level to every matrixci logger created so far.

    Module-level loggers are created at import time with the default level,
    before the CLI has parsed --log-level.
    """
    level = _resolve_log_level(log_level)
    for name in list(logging.Logger.manager.loggerDict):
        if name == "matrixci" or name.startswith("matrixci."):
            logger = logging.getLogger(name)
            logger.setLevel(level)
            for handler in logger.handlers:
                handler.setLevel(level)
