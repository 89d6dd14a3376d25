"""
Logging Configuration

Everything goes to one stdout handler so container log drivers pick it up.
Levels are set per logger family: the application follows LOG_LEVEL,
third-party libraries stay quiet unless asked otherwise.
"""

import sys
from logging.config import dictConfig
from typing import Any

from supernote.core.config import Settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _logger_levels(settings: Settings) -> dict[str, str]:
    sql_level = "INFO" if settings.LOG_SQL else "WARNING"
    return {
        "supernote": settings.LOG_LEVEL.upper(),
        "uvicorn": "INFO",
        # One line per request; production keeps only failures
        "uvicorn.access": "WARNING" if settings.is_production else "INFO",
        "sqlalchemy.engine": sql_level,
        "sqlalchemy.pool": sql_level,
        "asyncpg": "WARNING",
    }


def build_logging_config(settings: Settings) -> dict[str, Any]:
    """Return the ``dictConfig`` mapping for these settings."""
    return {
        "version": 1,
        "disable_existing_loggers": False,  # Keep loggers created at import time
        "formatters": {
            "default": {"format": LOG_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "stream": sys.stdout,
                "formatter": "default",
            },
        },
        # Anything not listed below only surfaces at WARNING and above
        "root": {"level": "WARNING", "handlers": ["console"]},
        "loggers": {
            name: {"level": level, "handlers": ["console"], "propagate": False}
            for name, level in _logger_levels(settings).items()
        },
    }


def setup_logging(settings: Settings) -> None:
    """
    Apply the logging configuration.

    Call once per process, before the server starts (``run()`` or the
    uvicorn factory path of ``create_app``).
    """
    dictConfig(build_logging_config(settings))
