"""Logging configuration for the Tipoko API."""
import logging
import sys
from typing import Optional

from tipoko.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Loggers whose records are noise outside of debugging
QUIET_LOGGERS = ("sqlalchemy.engine", "apscheduler", "aiosqlite")


def resolve_level(level: Optional[str] = None) -> int:
    """Map a level name (or the configured LOG_LEVEL) to a logging constant."""
    name = (level or settings.LOG_LEVEL or "INFO").upper()
    resolved = logging.getLevelName(name)
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {name}")
    return resolved


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure stdout logging for the API, the scheduler and uvicorn.

    Money movements (accruals, rollups, payouts) are logged by the
    ``tipoko.services`` loggers at INFO, so INFO is the lowest useful
    production level.

    Args:
        level: Logging level name. Defaults to ``settings.LOG_LEVEL``.
    """
    log_level = resolve_level(level)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("tipoko").setLevel(log_level)
    logging.getLogger("uvicorn").setLevel(log_level)
    # Request lines are already logged by the log_requests middleware
    logging.getLogger("uvicorn.access").setLevel(logging.DEBUG if settings.DEBUG else logging.WARNING)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
