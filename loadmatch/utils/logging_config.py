"""Logging setup for the LoadMatch engine"""

import logging
import sys
from pathlib import Path
from typing import Optional


ROOT_LOGGER_NAME = 'loadmatch'
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_to_console: bool = True
) -> logging.Logger:
    """
    Configure the 'loadmatch' logger namespace

    Every module logs through get_logger(__name__), so handlers attached
    here apply to the whole engine. Calling this again replaces the
    previous handlers.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL (case-insensitive)
        log_file: Optional log file; parent directories are created and the
            file always receives DEBUG records
        log_to_console: Attach a stderr handler at log_level

    Returns:
        The 'loadmatch' logger

    Raises:
        ValueError: If log_level is not a known level name
    """
    level = logging.getLevelName(str(log_level).upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers = []

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if log_to_console:
        # stdout is reserved for --json payloads
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(level)
        console.setFormatter(formatter)
        logger.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(path, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def setup_logging_from_config(config, default_level: str = "WARNING") -> logging.Logger:
    """
    Configure logging from the 'logging' section of a ConfigLoader

    Reads 'logging.level' and 'logging.file'; a missing loader or section
    falls back to default_level on the console only.
    """
    if config is None:
        return setup_logging(log_level=default_level)
    return setup_logging(
        log_level=config.get('logging.level', default_level),
        log_file=config.get('logging.file'),
        log_to_console=config.get('logging.console', True)
    )


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Logger for a module; pass __name__ so it sits under 'loadmatch'"""
    return logging.getLogger(name)
