"""Logging configuration."""

import logging
from typing import Optional

from accountvault.core.config import get_settings


def setup_logging(level: Optional[int] = None) -> None:
    """
    Configure root logging from settings.

    Args:
        level: Explicit level overriding LOG_LEVEL (used by the CLI flags)
    """
    settings = get_settings()
    if level is None:
        level = getattr(logging, settings.log_level.upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format=settings.log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
