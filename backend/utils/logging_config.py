"""
Logging setup for command-line entry points.
"""

import logging
import os


def configure_logging(level: str = None) -> int:
    """
    Configure root logging once per process.

    The level comes from the argument, else the LOG_LEVEL environment variable
    (default: INFO). Unknown level names fall back to INFO.

    Returns:
        The numeric level applied
    """
    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    numeric_level = getattr(logging, log_level, logging.INFO)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO
    logging.basicConfig(
        level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    return numeric_level
