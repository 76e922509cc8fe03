"""Centralized logging utilities."""

import logging
import sys
from typing import Optional, Any, MutableMapping, Tuple
from pathlib import Path

APP_LOGGER_NAME = "batchrunner"

DEFAULT_FORMAT = '[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s'


def setup_logger(
    name: str = APP_LOGGER_NAME,
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """
    Set up a logger with console and optional file output.

    Module loggers created through get_logger() are children of the
    application logger, so configuring it once covers the whole package.

    Args:
        name: Logger name
        level: Logging level
        log_file: Optional file to write logs to
        format_string: Custom format string

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Remove existing handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if format_string is None:
        format_string = DEFAULT_FORMAT

    formatter = logging.Formatter(format_string, datefmt='%H:%M:%S')

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the application logger hierarchy.

    Args:
        name: Module or component name

    Returns:
        Logger instance
    """
    if name != APP_LOGGER_NAME and not name.startswith(APP_LOGGER_NAME + "."):
        name = f"{APP_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


class JobLogAdapter(logging.LoggerAdapter):
    """Prefixes every message with the identity of the job that emitted it."""

    def __init__(self, logger: logging.Logger, identity: str):
        super().__init__(logger, {"identity": identity})

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['identity']}] {msg}", kwargs
