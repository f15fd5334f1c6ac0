"""
Logging setup shared by the client, the CLI and the reference server.
"""

from __future__ import annotations

import logging
from typing import TextIO

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
PACKAGE_LOGGER = "securevault"


def setup_logger(
    logger: logging.Logger, log_level: int, stream: TextIO | None = None
) -> logging.Logger:
    """
    Attach a StreamHandler with the standard format, once per logger.

    Args:
        logger: The logger instance to configure
        log_level: The logging level to set
        stream: Stream for the handler, stderr when omitted
    """
    logger.setLevel(log_level)
    if not logger.handlers:
        handler = logging.StreamHandler(stream)
        handler.setLevel(log_level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    return logger


def configure_package_logging(log_level: int) -> logging.Logger:
    """Configure the ``securevault`` logger that every module logs under."""
    return setup_logger(logging.getLogger(PACKAGE_LOGGER), log_level)
