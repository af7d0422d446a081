"""
Console output wrapper.

``ConsoleOutput`` prints short human-readable lines (optionally prefixed with an
emoji and indented) when running interactively, and forwards the same message to
the wrapped ``logging.Logger`` so it lands in the JSON log files.
"""

import logging
import sys
from typing import Optional


class ConsoleOutput:
    """Dual console/file logger used across collectors, models and scripts."""

    def __init__(self, logger: logging.Logger, stream=None):
        self.logger = logger
        self.stream = stream
        self.quiet = False

    def _echo(self, level: int, message: str, emoji: Optional[str], indent: int) -> None:
        if (self.quiet and level < logging.WARNING) or not self.logger.isEnabledFor(level):
            return
        if not logging.getLogger("trunk_metrics").handlers and self.stream is None:
            # Library use without setup_logging(): stay silent on stdout
            return
        prefix = " " * indent + (f"{emoji} " if emoji else "")
        print(f"{prefix}{message}", file=self.stream or sys.stdout)

    def info(self, message: str, emoji: Optional[str] = None, indent: int = 0) -> None:
        self._echo(logging.INFO, message, emoji, indent)
        self.logger.info(message)

    def success(self, message: str, indent: int = 0) -> None:
        self._echo(logging.INFO, message, "✅", indent)
        self.logger.info(message)

    def warning(self, message: str, indent: int = 0) -> None:
        self._echo(logging.WARNING, message, "⚠️", indent)
        self.logger.warning(message)

    def error(self, message: str, indent: int = 0) -> None:
        self._echo(logging.ERROR, message, "❌", indent)
        self.logger.error(message)

    def debug(self, message: str, indent: int = 0) -> None:
        self.logger.debug(message)

    def section(self, title: str) -> None:
        self._echo(logging.INFO, "", None, 0)
        self._echo(logging.INFO, "=" * 60, None, 0)
        self._echo(logging.INFO, title, None, 0)
        self._echo(logging.INFO, "=" * 60, None, 0)
        self.logger.info(f"== {title} ==")
