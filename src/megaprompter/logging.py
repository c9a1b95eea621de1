"""Structured logging shared by the megaprompter commands.

Log events are rendered as JSON lines on stderr, so they never interleave
with the XML and prompt text the commands write to stdout. `--log-file`
moves them to a file instead.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

LOG_LEVEL_ENV = "MEGAPROMPTER_LOG_LEVEL"

_configured = False


def _level() -> int:
    name = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    return logging.getLevelNamesMapping().get(name, logging.INFO)


def _handler(filename: str | Path | None) -> logging.Handler:
    if filename:
        return logging.FileHandler(str(filename), encoding="utf-8")
    return logging.StreamHandler(sys.stderr)


def setup_logging(filename: str | Path | None = None) -> structlog.BoundLogger:
    """Configure the structlog pipeline and where its output goes.

    The pipeline is built once, at the level named by `MEGAPROMPTER_LOG_LEVEL`
    (INFO when unset or unknown). Later calls with a `filename` replace the
    root handlers with a file handler, which is how `--log-file` takes effect
    after the module-level logger already exists.

    Args:
        filename: Optional log file path; stderr when None.

    Returns:
        The `megaprompter` structlog logger.
    """
    global _configured  # noqa: PLW0603
    if not _configured:
        level = _level()
        logging.basicConfig(level=level, handlers=[_handler(filename)], format="%(message)s")
        structlog.configure(
            processors=[
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            wrapper_class=structlog.make_filtering_bound_logger(level),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _configured = True
    elif filename:
        root = logging.getLogger()
        for handler in list(root.handlers):
            root.removeHandler(handler)
        root.addHandler(_handler(filename))
    return structlog.get_logger("megaprompter")


logger = setup_logging()
