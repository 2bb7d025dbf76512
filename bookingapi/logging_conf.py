import logging
from logging.config import dictConfig

from bookingapi.config import config


def configure_logging() -> None:
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "class": "logging.Formatter",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "format": "%(asctime)s %(levelname)-8s %(name)s:%(lineno)d - %(message)s",
                },
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "level": "DEBUG",
                    "formatter": "console",
                },
            },
            "loggers": {
                "bookingapi": {
                    "handlers": ["default"],
                    "level": config.LOG_LEVEL,
                    "propagate": False,
                },
                "uvicorn": {"handlers": ["default"], "level": "INFO"},
            },
        }
    )
    # request lines from the upstream client are noisy at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
