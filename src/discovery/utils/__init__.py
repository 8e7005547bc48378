"""Utility functions."""

from .seed import set_seed, get_rng
from .logging import setup_logging, get_logger, add_file_handler
from .tracking import register_run, finalize_run, RunInfo

__all__ = [
    "set_seed",
    "get_rng",
    "setup_logging",
    "get_logger",
    "add_file_handler",
    "register_run",
    "finalize_run",
    "RunInfo",
]
