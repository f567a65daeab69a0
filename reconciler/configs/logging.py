"""
Reconciler Logging Configuration

Debug level comes from RECONCILER_DEBUG, falling back to `debug:` in
config.yaml. Records go to stderr (warnings and above) and to a log file
resolved by resolve_log_file().
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from reconciler.configs.paths import ensure_data_dir
from reconciler.configs.yaml_config import load_yaml_config

LOG_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log every request or collection call at INFO
NOISY_LOGGERS = ("chromadb", "httpx", "uvicorn.access")

_TRUE = ("true", "1", "yes")


def is_debug_enabled() -> bool:
    """RECONCILER_DEBUG wins when set; otherwise `debug:` from config.yaml."""
    env_value = os.environ.get("RECONCILER_DEBUG")
    if env_value:
        return env_value.lower() in _TRUE
    return str(load_yaml_config().get("debug", "")).lower() in _TRUE


def resolve_log_file() -> Optional[Path]:
    """
    Log file location.

    RECONCILER_LOG_FILE overrides; "-" or "none" turns file logging off.
    Defaults to reconciler.log in the data directory.
    """
    env_value = os.environ.get("RECONCILER_LOG_FILE", "").strip()
    if env_value.lower() in ("-", "none"):
        return None
    if env_value:
        return Path(env_value).expanduser()
    return ensure_data_dir() / "reconciler.log"


def setup_logging(
    debug: Optional[bool] = None,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the "reconciler" logger tree. Safe to call more than once.

    Args:
        debug: Enable DEBUG level (defaults to is_debug_enabled())
        log_file: Log file path (defaults to resolve_log_file())

    Returns:
        The "reconciler" logger
    """
    if debug is None:
        debug = is_debug_enabled()
    if log_file is None:
        log_file = resolve_log_file()
    level = logging.DEBUG if debug else logging.INFO
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    logger = logging.getLogger("reconciler")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    stderr_handler.setLevel(logging.WARNING if log_file else level)
    logger.addHandler(stderr_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.debug(f"Logging configured: debug={debug}, file={log_file}")
    return logger


def get_logger(component: str) -> logging.Logger:
    """Logger for a component, e.g. get_logger("storage.gc.scanner")."""
    return logging.getLogger(f"reconciler.{component}")
