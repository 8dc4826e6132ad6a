"""Logging setup for applications embedding the core. Library modules only ever call logging.getLogger(__name__)."""

import logging
from typing import Optional

from src.core.config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | int = logging.INFO) -> None:
    """Attach a single stream handler to the root logger (replacing earlier ones)."""
    if isinstance(level, str):
        level = logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)
    # SQLAlchemy's engine logger is very chatty at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def configure_logging_from(settings: Optional[Settings] = None) -> None:
    """configure_logging at `settings.log_level` (CHESS_ROOMS_LOG_LEVEL when no settings are given)"""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
