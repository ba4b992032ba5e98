"""Logging configuration helpers for with_postgres_ready."""

import logging
from typing import Optional

from rich.logging import RichHandler

LOGGER_NAME = "with_postgres_ready"


def configure_logging(verbose: bool = False, log_file: Optional[str] = None) -> logging.Logger:
    """Attach a rich console handler (and optionally a file handler) to the package logger.

    Calling it again replaces the handlers installed by the previous call.
    """
    logger = logging.getLogger(LOGGER_NAME)
    level = logging.DEBUG if verbose else logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_with_postgres_ready", False):
            logger.removeHandler(handler)
            handler.close()

    console_handler = RichHandler(rich_tracebacks=True, show_level=False, show_path=False)
    console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    console_handler._with_postgres_ready = True
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        file_handler._with_postgres_ready = True
        logger.addHandler(file_handler)

    return logger
