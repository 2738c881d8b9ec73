"""Logging setup for the dungeon master toolkit."""

import logging

from .config import LoggingConfig


def configure_logging(config: LoggingConfig | None = None) -> None:
    """Configure root logging from the logging section of the app config."""
    config = config or LoggingConfig()
    level = getattr(logging, config.level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=config.format)
