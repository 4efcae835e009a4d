"""Centralized logging configuration."""

import logging
from typing import Optional

from polygon_weather.config import DEBUG

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

THIRD_PARTY_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpx",
    "fastapi",
    "geopy",
)


def configure_logging(level: Optional[int] = None):
    """
    Configure a consistent logging format for the service and the
    third-party loggers it runs alongside.
    """
    if level is None:
        level = logging.DEBUG if DEBUG else logging.INFO

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for logger_name in THIRD_PARTY_LOGGERS:
        logger = logging.getLogger(logger_name)
        # httpx logs every request at INFO
        logger.setLevel(logging.WARNING if logger_name == "httpx" else level)

        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        # Don't propagate to avoid duplicate messages
        logger.propagate = False

        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
