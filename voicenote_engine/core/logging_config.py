"""Logging configuration for the Voice Note Engine application.
"""

import logging
import logging.config

from voicenote_engine.core.config import get_settings

# Define logging format
LOG_FORMAT = "%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def build_logging_config(level: str = "INFO") -> dict:
    """Builds the dictConfig used by the app and by uvicorn.

    Args:
        level: Root log level name (e.g. "DEBUG", "INFO").
    """
    log_level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False, # Keep existing loggers (e.g., uvicorn)
        "formatters": {
            "default": {
                "format": LOG_FORMAT,
                "datefmt": DATE_FORMAT,
            },
        },
        "handlers": {
            "console": {
                "level": log_level,
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout", # Redirect to stdout
            },
        },
        "loggers": {
            # Root logger configuration
            "": {
                "handlers": ["console"],
                "level": log_level,
                "propagate": True,
            },
            "uvicorn.error": {
                "level": logging.INFO,
                "handlers": ["console"],
                "propagate": False,
            },
            "uvicorn.access": {
                "level": logging.WARNING, # Reduce verbosity of access logs
                "handlers": ["console"],
                "propagate": False,
            },
            "httpx": {
                "level": logging.WARNING,
                "handlers": ["console"],
                "propagate": False,
            },
            "openai": {
                "level": logging.WARNING,
                "handlers": ["console"],
                "propagate": False,
            },
            "googleapiclient": {
                # discovery_cache warnings are noise for service-account-less usage
                "level": logging.ERROR,
                "handlers": ["console"],
                "propagate": False,
            },
        }
    }


LOGGING_CONFIG = build_logging_config(get_settings().log_level)


def configure_logging(level: str | None = None) -> None:
    """Applies the logging dictConfig for the whole process."""
    config = build_logging_config(level) if level else LOGGING_CONFIG
    logging.config.dictConfig(config)
