"""
Logging bootstrap shared by the console and any embedding bot process.
"""

import logging
from typing import Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(level: str = "INFO", log_file: Optional[str] = "economy.log") -> None:
    """
    Configure root logging with timestamps.

    Args:
        level: Level name (e.g. "INFO", "DEBUG"); unknown names mean INFO
        log_file: Optional file to log to in addition to stderr
    """
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
    )
