"""
Logging utilities.

All pipeline modules log through the ``discovery`` logger hierarchy.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"
_FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(level: int | str) -> int:
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown log level: {level}")
        return resolved
    return level


def setup_logging(
    level: int | str = logging.INFO,
    log_file: Optional[str | Path] = None,
    name: str = "discovery",
) -> logging.Logger:
    """
    Configure the pipeline logger.

    Replaces any handlers installed by a previous call, so scripts can call
    this more than once without duplicating output.

    Args:
        level: Logging level, numeric or by name ("DEBUG", "INFO", ...)
        log_file: Optional path of an additional log file
        name: Logger name

    Returns:
        Configured logger
    """
    level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(console_handler)

    if log_file is not None:
        add_file_handler(logger, log_file, level)

    return logger


def add_file_handler(
    logger: logging.Logger,
    log_file: str | Path,
    level: int | str = logging.INFO,
) -> logging.FileHandler:
    """Attach a file handler to ``logger`` and return it (caller removes it)."""
    log_file = Path(log_file)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(_resolve_level(level))
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(file_handler)
    return file_handler


def get_logger(name: str = "discovery") -> logging.Logger:
    """Get the pipeline logger (or a named child of it)."""
    return logging.getLogger(name)
