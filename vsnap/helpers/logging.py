################################################################################
# VSNAP
#
# @file:        logging.py
# @module:      vsnap.helpers.logging
# @description: Logger factory, console colors and structured file output.
# @author:      vsnap contributors
# @repository:  https://github.com/fominv/vsnap
# @version:     0.6.0
#
# ------------------------------------------------------------------------------
# MIT-Lizenz: siehe LICENSE oder https://opensource.org/licenses/MIT
################################################################################

"""
Logging helpers for vsnap.

All modules obtain their logger through get_logger(). The CLI configures
handlers once through log_manager.configure(). Context passed via
``extra={...}`` (volume, snapshot, container) ends up as JSON fields when
structured output is enabled.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, TextIO

from .constants import LOG_DATE_FORMAT, LOG_FORMAT

ROOT_LOGGER_NAME = "vsnap"

# Attributes every LogRecord carries; everything else came in through extra=
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class Colors:
    """ANSI color codes for console output."""

    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    CYAN = "\033[36m"

    LEVELS = {
        logging.DEBUG: DIM,
        logging.INFO: CYAN,
        logging.WARNING: YELLOW,
        logging.ERROR: RED,
        logging.CRITICAL: BOLD + RED,
    }


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name when writing to a terminal."""

    def __init__(self, use_colors: bool = True):
        super().__init__(LOG_FORMAT, LOG_DATE_FORMAT)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_colors:
            return super().format(record)
        original = record.levelname
        color = Colors.LEVELS.get(record.levelno, "")
        record.levelname = f"{color}{original}{Colors.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original


class StructuredFormatter(logging.Formatter):
    """Render each record as one JSON object, including extra= fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            entry[key] = value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class LogManager:
    """Owns the handlers attached to the ``vsnap`` logger hierarchy."""

    def __init__(self):
        self._logger = logging.getLogger(ROOT_LOGGER_NAME)
        self._logger.propagate = False
        self._configured = False

    @property
    def configured(self) -> bool:
        return self._configured

    def configure(
        self,
        level: str = "INFO",
        log_file: Optional[str] = None,
        max_size_mb: int = 100,
        backup_count: int = 5,
        structured: bool = False,
        stream: Optional[TextIO] = None,
    ) -> None:
        """
        (Re)configure handlers.

        Args:
            level: Log level name (DEBUG, INFO, WARNING, ERROR)
            log_file: Optional path of a rotating log file (always JSON)
            max_size_mb: Rotation threshold for the log file
            backup_count: Number of rotated files to keep
            structured: Emit JSON on the console stream as well
            stream: Console stream, stderr by default
        """
        numeric_level = logging.getLevelName(level.upper())
        if not isinstance(numeric_level, int):
            raise ValueError(f"Invalid log level: {level}")

        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()

        self._logger.setLevel(numeric_level)

        console_stream = stream or sys.stderr
        console = logging.StreamHandler(console_stream)
        if structured:
            console.setFormatter(StructuredFormatter())
        else:
            console.setFormatter(ColoredFormatter(use_colors=console_stream.isatty()))
        self._logger.addHandler(console)

        if log_file:
            path = Path(log_file).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                path,
                maxBytes=max_size_mb * 1024 * 1024,
                backupCount=backup_count,
                encoding="utf-8",
            )
            file_handler.setFormatter(StructuredFormatter())
            self._logger.addHandler(file_handler)

        self._configured = True

    def set_level(self, level: str) -> None:
        self._logger.setLevel(level.upper())


log_manager = LogManager()


def get_logger(name: str) -> logging.Logger:
    """Return a logger below the ``vsnap`` hierarchy."""
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Shortcut used by entry points that have no configuration file."""
    log_manager.configure(level="DEBUG" if verbose else "INFO", log_file=log_file)
