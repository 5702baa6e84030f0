from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Labeled stdout logging for the import tool.

Every line starts with one label so operators (and tests) can grep output:
INFO / WARN / ERROR for ordinary messages, SUMMARY (custom level 25) for the
one-line result of an apply.

Modules log through ``logging.getLogger(__name__)``; everything below the
``edu_import`` logger ends up on the single handler installed here.
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "set_debug",
    "log_summary",
    "reset_logging",
]

LOGGER_NAME = "edu_import"
SUMMARY_LEVEL = 25  # between INFO and WARNING

_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    SUMMARY_LEVEL: "SUMMARY",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
}

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """``LABEL message``; unknown levels fall back to their level name."""

    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        text = f"{label} {record.getMessage()}"
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


def _console_handler(stream: TextIO) -> logging.Handler:
    handler = logging.StreamHandler(stream)
    handler.setFormatter(LabeledFormatter())
    handler.setLevel(logging.INFO)
    return handler


def setup_logging(stream: TextIO | None = None) -> logging.Logger:
    """Install the labeled handler on the ``edu_import`` logger.

    Idempotent: later calls return the logger configured by the first one.
    ``stream`` defaults to the current ``sys.stdout``.
    """
    global _logger
    if _logger is not None:
        return _logger

    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    app = logging.getLogger(LOGGER_NAME)
    for old in list(app.handlers):
        app.removeHandler(old)
    app.addHandler(_console_handler(stream or sys.stdout))
    app.setLevel(logging.INFO)
    # one handler only; the root logger must not print the same line again
    app.propagate = False

    _logger = app
    return app


def get_logger() -> logging.Logger:
    return _logger if _logger is not None else setup_logging()


def set_debug(enabled: bool = True) -> None:
    """Switch the app logger and its handlers between DEBUG and INFO."""
    app = get_logger()
    level = logging.DEBUG if enabled else logging.INFO
    app.setLevel(level)
    for h in app.handlers:
        h.setLevel(level)


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Forget the configured logger (tests call this between runs)."""
    global _logger
    _logger = None
