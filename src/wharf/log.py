"""Logging configuration for the wharf command line."""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": LOG_FORMAT},
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "wharf": {"level": "INFO"},
        "fsspec": {"level": "WARNING"},
    },
}


def configure_logging(verbose: bool = False) -> None:
    """Install `LOGGING_CONFIG` unless the host process already configured logging."""
    if not logging.getLogger().handlers:
        dictConfig(LOGGING_CONFIG)
    logging.getLogger("wharf").setLevel(logging.DEBUG if verbose else logging.INFO)
