# Area: Shared
"""
duet_room._shared.logging_config — Structured logging setup
============================================================

Configures dual logging: terminal (colored) + file (JSON).
Event display mode suppresses standard logs on the terminal.
"""

from __future__ import annotations
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Union

from .logging_formatters import (
    EventModeFilter,
    JSONFormatter,
    TerminalFormatter,
    disable_event_mode,
    enable_event_mode,
    is_event_mode_enabled,
)

if TYPE_CHECKING:
    from ..errors import InvalidEventError

# Package logger
logger = logging.getLogger("duet_room")

__all__ = [
    "setup_logging",
    "log_rejected_event",
    "enable_event_mode",
    "disable_event_mode",
    "is_event_mode_enabled",
]


def setup_logging(
    log_file_path: str = "duet_room.log",
    level: Union[int, str] = logging.INFO,
) -> None:
    """
    Configure logging for the package.

    Parameters
    ----------
    log_file_path : str
        Path to the log file. Defaults to 'duet_room.log' in current dir.
        An empty string disables the file handler.
    level : int or str
        Logging level, as a number or a name such as "DEBUG".
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    pkg_logger = logging.getLogger("duet_room")
    pkg_logger.setLevel(level)

    # Remove existing handlers
    pkg_logger.handlers.clear()

    # Terminal handler with colors
    terminal_handler = logging.StreamHandler(sys.stdout)
    terminal_handler.setLevel(level)
    terminal_handler.setFormatter(TerminalFormatter(
        fmt="%(asctime)s │ %(levelname)s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    ))
    terminal_handler.addFilter(EventModeFilter())
    pkg_logger.addHandler(terminal_handler)

    # File handler with JSON
    if log_file_path:
        try:
            log_path = Path(log_file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(JSONFormatter())
            pkg_logger.addHandler(file_handler)
        except OSError as e:
            pkg_logger.warning(f"Could not create log file: {e}")

    # Prevent propagation to root logger
    pkg_logger.propagate = False


def log_rejected_event(error: "InvalidEventError") -> None:
    """
    Log a rejected inbound frame in the structured format.

    The full block goes to DEBUG (file), a one-line summary to WARNING.
    """
    logger.debug(error.format_error_log())
    logger.warning(
        f"Dropped malformed room event: {'; '.join(error.validation_errors)}",
        extra={"event_type": "invalid"},
    )
