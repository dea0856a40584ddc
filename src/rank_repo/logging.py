from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from pathlib import Path

LOGGER_NAME = "rank_repo"
DEFAULT_LEVEL = logging.WARNING

_configured = False


def resolve_level(level: int | str) -> int:
    """Map a level name such as ``"debug"`` to its ``logging`` constant; unknown names mean WARNING."""
    if isinstance(level, int):
        return level
    return logging.getLevelNamesMapping().get(level.strip().upper(), DEFAULT_LEVEL)


def _make_handler(filename: str | Path | None) -> logging.Handler:
    if filename:
        return logging.FileHandler(str(filename), encoding="utf-8")
    return logging.StreamHandler(sys.stderr)


def setup_logging(
    filename: str | Path | None = None,
    level: int | str = DEFAULT_LEVEL,
    *,
    force: bool = False,
) -> structlog.BoundLogger:
    """Configure JSON structured logging for rank_repo.

    Stdout carries command output, so log events go to stderr or to ``filename``.
    Only the first call configures anything unless ``force`` is set; the CLI
    forces a reconfiguration once ``--log-file`` and ``--log-level`` are known.

    Args:
        filename: Optional log file. If None, events are written to stderr.
        level: Minimum level, as a ``logging`` constant or its name.
        force: Reconfigure even if logging was already set up.

    Returns:
        The package logger.
    """
    global _configured  # noqa: PLW0603
    if _configured and not force:
        return structlog.get_logger(LOGGER_NAME)

    numeric = resolve_level(level)
    logging.basicConfig(level=numeric, handlers=[_make_handler(filename)], format="%(message)s", force=True)
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    _configured = True
    return structlog.get_logger(LOGGER_NAME)


logger = setup_logging()
