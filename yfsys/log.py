"""Log-level plumbing for the yfsys package.

The library is silent by default. Applications either configure logging
themselves or call :func:`set_log_level` / :func:`configure_logging`.
"""

from __future__ import annotations

import logging
from enum import IntEnum

PACKAGE_LOGGER = "yfsys"

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


class LogLevel(IntEnum):
    """Verbosity levels, from silent to debug output."""

    NONE = 0
    ERROR = 1
    INFO = 2
    DEBUG = 3

    def to_logging(self) -> int:
        return {
            LogLevel.NONE: logging.CRITICAL + 10,
            LogLevel.ERROR: logging.ERROR,
            LogLevel.INFO: logging.INFO,
            LogLevel.DEBUG: logging.DEBUG,
        }[self]

    @classmethod
    def parse(cls, value: str | int | LogLevel) -> LogLevel:
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, int):
            return cls(value)
        try:
            return cls[value.strip().upper()]
        except KeyError:
            raise ValueError(
                f"Unknown log level {value!r}; expected one of {[m.name.lower() for m in cls]}"
            ) from None


def set_log_level(level: str | int | LogLevel) -> None:
    """Set the verbosity of the yfsys package logger."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(LogLevel.parse(level).to_logging())


def configure_logging(level: str | int | LogLevel = LogLevel.INFO) -> None:
    """Configure root logging for scripts and set the package verbosity."""
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    set_log_level(level)
