"""Logging configuration.

Cache internals (fetches, phase transitions, invalidation) log at DEBUG;
rollbacks, retries and classified query errors at WARNING. The file sink
always records DEBUG so a session can be replayed after the fact.
"""

import sys

from loguru import logger

from settings import LOG_DIR, LOG_LEVEL, LOG_TO_FILE

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | <cyan>{name}</cyan> | <level>{message}</level>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <7} | {name}:{function}:{line} | {message}"


def setup_logging(level: str = LOG_LEVEL, to_file: bool = LOG_TO_FILE):
    """Replace loguru's default sink with a stderr sink at ``level`` and, if asked, a daily file."""
    logger.remove()

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level.upper(), colorize=True)

    if to_file:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        logger.add(
            LOG_DIR / "query_cache_{time:YYYY-MM-DD}.log",
            format=FILE_FORMAT,
            level="DEBUG",
            rotation="00:00",
            retention="7 days",
            compression="gz",
        )
        logger.info("Logging to {}", LOG_DIR)

    return logger
