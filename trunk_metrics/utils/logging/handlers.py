"""
Rotating file handlers for analysis logs.

Rotated files are gzip-compressed so long-running dashboards do not fill the
disk with old JSON log lines.
"""

import gzip
import logging
import os
import shutil
from logging.handlers import RotatingFileHandler
from typing import Optional


class CompressingRotatingFileHandler(RotatingFileHandler):
    """
    RotatingFileHandler whose backups are stored as ``<file>.N.gz``.

    Rotation goes through the ``namer``/``rotator`` hooks of the base class, so
    the shifting of ``.1.gz`` -> ``.2.gz`` is handled by the standard library.
    """

    def __init__(
        self,
        filename: str,
        mode: str = "a",
        maxBytes: int = 0,
        backupCount: int = 0,
        encoding: Optional[str] = None,
        delay: bool = False,
        compress: bool = True,
    ):
        super().__init__(filename, mode, maxBytes, backupCount, encoding, delay)
        self.compress = compress
        if compress:
            self.namer = self._gzip_name
            self.rotator = self._gzip_rotate

    @staticmethod
    def _gzip_name(default_name: str) -> str:
        return f"{default_name}.gz"

    @staticmethod
    def _gzip_rotate(source: str, dest: str) -> None:
        try:
            with open(source, "rb") as f_in, gzip.open(dest, "wb") as f_out:
                shutil.copyfileobj(f_in, f_out)
        except OSError as e:
            # Keep the uncompressed file around rather than lose log lines
            logging.getLogger("trunk_metrics.logging").warning(f"Failed to compress {source}: {e}")
            os.replace(source, dest[: -len(".gz")])
            return
        os.remove(source)


def create_rotating_handler(
    log_file: str,
    max_bytes: int = 10485760,  # 10MB
    backup_count: int = 10,
    compress: bool = True,
    formatter: Optional[logging.Formatter] = None,
) -> CompressingRotatingFileHandler:
    """
    Create a compressing rotating handler, creating the log directory if needed.

    Args:
        log_file: Path to the log file
        max_bytes: Size in bytes that triggers a rollover (default: 10MB)
        backup_count: Number of rotated files to keep
        compress: Gzip rotated files
        formatter: Formatter to attach

    Returns:
        CompressingRotatingFileHandler instance
    """
    log_dir = os.path.dirname(log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)

    handler = CompressingRotatingFileHandler(
        filename=log_file, maxBytes=max_bytes, backupCount=backup_count, compress=compress, encoding="utf-8"
    )
    if formatter:
        handler.setFormatter(formatter)

    return handler
