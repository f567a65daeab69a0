"""
Reconciler Data Paths

Manages the data directory and ChromaDB location.
Auto-detects Docker environment for appropriate path selection.
"""

import os
from pathlib import Path

DEFAULT_DATA_PATH = Path.home() / ".reconciler"


def get_data_path() -> Path:
    """Get the reconciler data directory path.

    Resolution order:
    - RECONCILER_DATA_PATH env var
    - Docker: /app/reconciler_data (when /app exists and is writable)
    - Host: ~/.reconciler

    Returns:
        Path to the data directory
    """
    env_path = os.environ.get("RECONCILER_DATA_PATH")
    if env_path:
        return Path(env_path).expanduser()
    if os.path.exists("/app") and os.access("/app", os.W_OK):
        return Path("/app/reconciler_data")
    return DEFAULT_DATA_PATH


def ensure_data_dir() -> Path:
    """Ensure the data directory exists.

    Returns:
        Path to data directory
    """
    data_path = get_data_path()
    data_path.mkdir(parents=True, exist_ok=True)
    return data_path


def get_default_db_path() -> str:
    """Get the default ChromaDB persistence path.

    RECONCILER_DB_PATH wins; otherwise /app/reconciler_db in Docker
    and ~/.reconciler/db on a host.

    Returns:
        Database path as string
    """
    env_path = os.environ.get("RECONCILER_DB_PATH")
    if env_path:
        return os.path.expanduser(env_path)
    if os.path.exists("/app") and os.access("/app", os.W_OK):
        return "/app/reconciler_db"
    return os.path.expanduser("~/.reconciler/db")


DB_PATH = get_default_db_path()
