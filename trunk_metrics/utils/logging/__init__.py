"""Logging helpers: ``setup_logging`` for entry points, ``get_logger`` everywhere else."""

from .config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
