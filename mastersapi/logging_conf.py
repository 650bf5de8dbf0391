import logging
from logging.config import dictConfig

from mastersapi.config import DevConfig, config


def configure_logging() -> None:
    handlers = {
        "default": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "console",
        },
    }
    if config.LOG_FILE:
        handlers["rotating_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "DEBUG",
            "formatter": "file",
            "filename": config.LOG_FILE,
            "maxBytes": 1024 * 1024,
            "backupCount": 5,
            "encoding": "utf8",
        }

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {
                    "class": "logging.Formatter",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "format": "%(name)s:%(lineno)d - %(message)s",
                },
                "file": {
                    "class": "logging.Formatter",
                    "datefmt": "%Y-%m-%dT%H:%M:%S",
                    "format": "%(asctime)s.%(msecs)03dZ | %(levelname)-8s | %(name)s:%(lineno)d - %(message)s",
                },
            },
            "handlers": handlers,
            "loggers": {
                "uvicorn": {"handlers": ["default"], "level": "INFO"},
                "databases": {"handlers": ["default"], "level": "WARNING"},
                "mastersapi": {
                    "handlers": list(handlers),
                    "level": "DEBUG" if isinstance(config, DevConfig) else config.LOG_LEVEL,
                    "propagate": False,
                },
            },
        }
    )
    logging.getLogger("passlib").setLevel(logging.ERROR)
