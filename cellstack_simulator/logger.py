"""
Simulation Logger

Configures the package logger (console and optional log file) and catches
unhandled exceptions with complete trace information.
"""

import logging
import sys
import traceback
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = 'cellstack_simulator'

logger = logging.getLogger(LOGGER_NAME)

formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)


def setup_logging(verbose: bool = False, log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        verbose: Log DEBUG messages instead of INFO
        log_file: Optional path of a log file (appended)

    Returns:
        The configured package logger
    """
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, mode='a', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_exception(exc_type, exc_value, exc_traceback, context: Optional[str] = None):
    """
    Log an exception with full traceback.

    Args:
        exc_type: Exception type
        exc_value: Exception value
        exc_traceback: Exception traceback
        context: Optional context string (e.g., "Simulation loop")
    """
    if exc_type is None:
        return

    tb_lines = traceback.format_exception(exc_type, exc_value, exc_traceback)
    full_traceback = ''.join(tb_lines)

    error_msg = "Exception occurred"
    if context:
        error_msg += f" in {context}"
    error_msg += f": {exc_type.__name__}: {exc_value}\n\nFull Traceback:\n{full_traceback}"

    logger.error(error_msg)


def setup_exception_hook():
    """
    Set up global exception hook to catch all unhandled exceptions.
    """
    def exception_hook(exc_type, exc_value, exc_traceback):
        # Don't log KeyboardInterrupt (Ctrl+C)
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return

        log_exception(exc_type, exc_value, exc_traceback, context="Unhandled Exception")
        sys.__excepthook__(exc_type, exc_value, exc_traceback)

    sys.excepthook = exception_hook
