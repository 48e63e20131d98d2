"""Logging setup. Modules log through ``logging.getLogger(__name__)``."""

import logging.config

from feeledger.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"


def build_logging_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": level,
            },
        },
        "loggers": {
            "feeledger": {"handlers": ["console"], "level": level, "propagate": False},
            "sqlalchemy.engine": {"handlers": ["console"], "level": "WARNING", "propagate": False},
        },
    }


def configure_logging(level: str = None) -> None:
    logging.config.dictConfig(build_logging_config((level or settings.log_level).upper()))
