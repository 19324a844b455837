"""Logging helpers for the event platform client."""
from __future__ import annotations

from logging.config import dictConfig


DEFAULT_LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    },
    "loggers": {
        # Per-request chatter from the HTTP stack drowns out delivery logs.
        "httpx": {"level": "WARNING"},
        "httpcore": {"level": "WARNING"},
    },
    "root": {
        "level": "INFO",
        "handlers": ["console"],
    },
}


def setup_logging(level: str = "INFO", *, transport_level: str = "WARNING") -> None:
    """Configure process logging for the dispatcher and its HTTP transport."""

    loggers = {name: {**cfg, "level": transport_level.upper()} for name, cfg in DEFAULT_LOGGING_CONFIG["loggers"].items()}
    config = {
        **DEFAULT_LOGGING_CONFIG,
        "loggers": loggers,
        "root": {**DEFAULT_LOGGING_CONFIG["root"], "level": level.upper()},
    }
    dictConfig(config)
