"""
Logging setup for the review engine.

Every module logs through ``logging.getLogger(__name__)``, so all records end
up under the ``sheet_review`` package logger, which owns the console handler.
The extraction and review loggers additionally keep their own dated files.
"""
import logging
import sys
from datetime import datetime
from typing import Optional

from ..config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def dated_log_file(prefix: str) -> str:
    """e.g. review_20240315.log"""
    return f'{prefix}_{datetime.now().strftime("%Y%m%d")}.log'


def _file_handler(log_file: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(settings.LOGS_DIR / log_file, encoding='utf-8')
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logger(
    name: str,
    log_file: Optional[str] = None,
    level: Optional[int] = None,
    console: bool = False
) -> logging.Logger:
    """
    Configure a named logger once.

    Args:
        name: Logger name
        log_file: File under LOGS_DIR; skipped when LOG_TO_FILE is off
        level: Logging level (defaults to LOG_LEVEL)
        console: Attach a stdout handler

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    level = level if level is not None else logging.getLevelName(settings.LOG_LEVEL.upper())
    logger.setLevel(level)

    # Prevent duplicate handlers on re-import
    if logger.handlers:
        return logger

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(level)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(console_handler)

    if log_file and settings.LOG_TO_FILE:
        logger.addHandler(_file_handler(log_file, level))

    return logger


package_logger = setup_logger('sheet_review', console=True)

extraction_logger = setup_logger('sheet_review.extraction', dated_log_file('extraction'))

review_logger = setup_logger('sheet_review.review', dated_log_file('review'))
