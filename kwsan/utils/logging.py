"""
Logging configuration utilities.

This module provides functions for setting up and configuring logging.
"""
import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(debug: bool = False, log_file: Optional[Path] = None) -> None:
    """
    Configure logging for the application.

    Args:
        debug: Whether to enable debug logging
        log_file: Optional file receiving a copy of every record, kept next
            to the certificates as part of the audit trail
    """
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=DATE_FORMAT)

    logger = logging.getLogger('kwsan')
    logger.setLevel(level)

    if log_file is not None:
        handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(handler)
