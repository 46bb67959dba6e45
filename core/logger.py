"""
Logging configuration and utilities.

This module sets up consistent logging across the job engine.
"""

import logging
import sys
from pathlib import Path
from typing import Optional


def setup_logger(
    name: str = 'job_engine',
    log_file: Optional[str] = None,
    level: int = logging.INFO,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Set up a logger with console and file handlers.

    Args:
        name: Logger name
        log_file: Optional path to log file
        level: Logging level (default: INFO)
        format_string: Optional custom format string

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logger(
        >>>     name='job_engine',
        >>>     log_file='logs/jobs.log',
        >>>     level=logging.DEBUG
        >>> )
        >>> logger.info("Session started")
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers = []

    # Default format
    if format_string is None:
        format_string = '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s'

    formatter = logging.Formatter(format_string, datefmt='%Y-%m-%d %H:%M:%S')

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def setup_from_config(config: dict) -> logging.Logger:
    """
    Configure the package loggers from the 'logging' section of a config.

    Args:
        config: Configuration dictionary (see configs/defaults/session.yaml)

    Returns:
        The configured 'job_engine' logger
    """
    section = config.get('logging') or {}
    level_name = str(section.get('level', 'INFO')).upper()
    level = getattr(logging, level_name, logging.INFO)
    log_file = section.get('file')

    # api/ and cli/ log under their own names
    for name in ('api', 'cli'):
        setup_logger(name=name, log_file=log_file, level=level)
    return setup_logger(name='job_engine', log_file=log_file, level=level)


def log_config(logger: logging.Logger, config: dict, title: str = "Configuration") -> None:
    """
    Log configuration dictionary in a readable format.

    Args:
        logger: Logger instance
        config: Configuration dictionary
        title: Title for the log section

    Example:
        >>> log_config(logger, config, title="Session Configuration")
    """
    logger.info("=" * 60)
    logger.info(title)
    logger.info("=" * 60)

    def log_dict(d: dict, indent: int = 0):
        for key, value in d.items():
            if isinstance(value, dict):
                logger.info("  " * indent + f"{key}:")
                log_dict(value, indent + 1)
            else:
                logger.info("  " * indent + f"{key}: {value}")

    log_dict(config)
    logger.info("=" * 60)
