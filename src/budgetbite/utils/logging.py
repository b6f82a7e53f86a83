"""Logging configuration."""

import logging

from ..config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging() -> None:
    """Configure root logging from settings (called on startup)."""
    logging.basicConfig(level=settings.log_level.upper(), format=LOG_FORMAT, force=True)

    # SQL echo is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
