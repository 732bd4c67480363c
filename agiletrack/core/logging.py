"""Logging setup shared by the API process and migrations."""

import logging

from agiletrack.core.config import get_settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Apply the configured log level to the ``agiletrack`` logger tree."""

    resolved = (level or get_settings().log_level).upper()
    logging.basicConfig(format=LOG_FORMAT)
    logging.getLogger("agiletrack").setLevel(resolved)
