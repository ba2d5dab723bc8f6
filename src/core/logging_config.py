"""Logging configuration.

Installs a single console handler for the application and uvicorn loggers.
"""

import logging.config

from config import LOG_LEVEL


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configure root logging for the service.

    Args:
        level: Log level name, e.g. "INFO" or "DEBUG".
    """
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {"handlers": ["console"], "level": level},
            "loggers": {
                # SQL echo is too noisy outside of debugging
                "sqlalchemy.engine": {"level": "WARNING"},
                "cloudinary": {"level": "WARNING"},
                "urllib3": {"level": "WARNING"},
            },
        }
    )
