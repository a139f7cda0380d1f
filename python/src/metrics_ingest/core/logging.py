"""Logging setup shared by the ingestion services."""

import logging
from typing import Optional

from .config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging with the standard format.

    Args:
        level: Optional level name (defaults to ``settings.LOG_LEVEL``)
    """
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper()),
        format=LOG_FORMAT,
    )
