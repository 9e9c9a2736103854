"""Logging configuration."""
import logging
import sys
from typing import Optional, Union

from app.core.config import settings

# Chatty libraries that only matter when debugging the store itself
QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "asyncpg", "httpx", "uvicorn.access")


def setup_logging(level: Optional[Union[int, str]] = None) -> None:
    """
    Configure application logging.

    Args:
        level: Root level; defaults to ``settings.log_level``
    """
    if level is None:
        level = settings.log_level
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Third-party loggers stay at WARNING unless the app itself is at DEBUG
    third_party_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)

    logging.getLogger(__name__).info(
        f"[LOGGING] Configured at {logging.getLevelName(level)} for {settings.store_name}"
    )
