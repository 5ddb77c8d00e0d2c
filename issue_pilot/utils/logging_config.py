"""
Logging configuration using structlog for structured, JSON-based logging.

Logs go to stderr, or to a file when one is given, so they never interleave
with the session transcripts the console prints on stdout.
"""

import sys
from pathlib import Path
from typing import Any, TextIO

import structlog

_log_file_handle: TextIO | None = None


def configure_logging(log_level: str = "WARNING", log_file: str | Path | None = None) -> None:
    """Configure structured logging with JSON output.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path; logs are appended there instead of stderr
    """
    global _log_file_handle

    if _log_file_handle is not None:
        _log_file_handle.close()
        _log_file_handle = None

    if log_file is not None:
        _log_file_handle = open(log_file, "a", encoding="utf-8")  # noqa: SIM115
        logger_factory: Any = structlog.WriteLoggerFactory(file=_log_file_handle)
    else:
        logger_factory = structlog.PrintLoggerFactory(file=sys.stderr)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level.upper()),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=False,
    )
