"""
Logging configuration loader and setup.

Loads ``config/logging.yaml`` (or built-in defaults) and wires the
``trunk_metrics`` logger hierarchy to rotating JSON log files.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, cast

import yaml

from .console import ConsoleOutput
from .formatters import JSONFormatter
from .handlers import create_rotating_handler

ROOT_LOGGER_NAME = "trunk_metrics"

# Module-level cache for logger instances
_loggers: Dict[str, ConsoleOutput] = {}
_console_settings = {"quiet": False}


def load_config(config_file: Optional[str] = None) -> Dict:
    """
    Load logging configuration from a YAML file.

    Args:
        config_file: Path to YAML config file (default: config/logging.yaml)

    Returns:
        Dictionary containing logging configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    config_path = Path(config_file or "config/logging.yaml")

    if not config_path.exists():
        raise FileNotFoundError(f"Logging config file not found: {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        config = cast(Dict[Any, Any], yaml.safe_load(f) or {})

    return config


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    config_file: Optional[str] = None,
    quiet: bool = False,
) -> logging.Logger:
    """
    Set up the ``trunk_metrics`` logger hierarchy.

    Installs a main JSON log file at ``log_level`` and an error log file that
    receives warnings and above. Child logger levels come from the ``loggers``
    section of the YAML config.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional override for the main log file path
        config_file: Optional path to logging config YAML
        quiet: Suppress console echo (file logging is unaffected)

    Returns:
        The ``trunk_metrics`` logger

    Example:
        >>> setup_logging(log_level="DEBUG")
        >>> out = get_logger("trunk_metrics.models.incidents")
        >>> out.info("Scanning runs", emoji="🔎")
    """
    try:
        config = load_config(config_file)
    except FileNotFoundError:
        config = _get_default_config()

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(numeric_level)

    # Re-running setup (tests, reloads) must not stack handlers
    for handler in list(root_logger.handlers):
        handler.close()
        root_logger.removeHandler(handler)

    rotation = config.get("rotation", {})
    files = config.get("files", {})

    main_handler = create_rotating_handler(
        log_file=log_file or files.get("main", "logs/trunk_metrics.log"),
        max_bytes=rotation.get("max_bytes", 10485760),
        backup_count=rotation.get("backup_count", 10),
        compress=rotation.get("compress", True),
        formatter=JSONFormatter(),
    )
    main_handler.setLevel(numeric_level)
    root_logger.addHandler(main_handler)

    error_handler = create_rotating_handler(
        log_file=files.get("error", "logs/trunk_metrics_error.log"),
        max_bytes=rotation.get("max_bytes", 10485760),
        backup_count=rotation.get("backup_count", 10),
        compress=rotation.get("compress", True),
        formatter=JSONFormatter(),
    )
    error_handler.setLevel(logging.WARNING)
    root_logger.addHandler(error_handler)

    for logger_name, logger_config in config.get("loggers", {}).items():
        child_level = (logger_config or {}).get("level", log_level.upper())
        logging.getLogger(logger_name).setLevel(getattr(logging, child_level, logging.INFO))

    _console_settings["quiet"] = quiet
    for out in _loggers.values():
        out.quiet = quiet

    return root_logger


def get_logger(name: str) -> ConsoleOutput:
    """
    Get the cached ``ConsoleOutput`` wrapper for ``name``.

    Args:
        name: Logger name (e.g., 'trunk_metrics.collectors.github')

    Returns:
        ConsoleOutput instance wrapping the named logger
    """
    if name not in _loggers:
        _loggers[name] = ConsoleOutput(logging.getLogger(name))
        _loggers[name].quiet = _console_settings["quiet"]

    return _loggers[name]


def _get_default_config() -> Dict:
    """Default configuration used when no logging YAML is present."""
    return {
        "rotation": {"max_bytes": 10485760, "backup_count": 10, "compress": True},  # 10MB
        "files": {"main": "logs/trunk_metrics.log", "error": "logs/trunk_metrics_error.log"},
        "loggers": {
            "trunk_metrics.collectors.github": {"level": "INFO"},
            "trunk_metrics.models": {"level": "INFO"},
            "trunk_metrics.dashboard": {"level": "INFO"},
        },
    }
