"""
Reconciler YAML Configuration

Loading and the default template for ~/.reconciler/config.yaml.
"""

import logging
from pathlib import Path

import yaml

from reconciler.configs.paths import ensure_data_dir, get_data_path

logger = logging.getLogger("reconciler.configs.yaml")

# --- Default Config Template ---

DEFAULT_CONFIG_YAML = """\
# Reconciler Configuration
# Edit this file to customize cleanup behavior.

# Document store backend: "chromadb" (persistent) or "memory" (ephemeral)
store:
  backend: "chromadb"
  # path: ~/.reconciler/db

# HTTP server port
http_port: 8090

# Enable debug logging
debug: false

# Runtime Settings
runtime:
  # Worker pool size for per-collection cleanup jobs
  concurrency: 3
  # Orphan scan page size (capped at 500)
  batch_size: 100
  # Profile refresh sweep
  sweep_batch_size: 50
  sweep_max_duration_ms: 20000
  # Members carrying this tag are treated as test accounts
  test_member_tag: "test"

# Optional reference map override. Each entry maps a cleanup target to a
# collection and the paths that hold member ids.
# reference_map:
#   reservations:
#     collection: reservations
#     paths:
#       - path: memberId
#         shape: scalar
#   leaderboardEntries:
#     collection: pvpLeaderboard
#     paths:
#       - path: entries
#         shape: object_list
#         key: memberId
"""


def get_config_path() -> Path:
    """Get the path to config.yaml."""
    return get_data_path() / "config.yaml"


def load_yaml_config() -> dict:
    """
    Load configuration from ~/.reconciler/config.yaml.

    Returns:
        Configuration dictionary (empty if file doesn't exist or is unreadable)
    """
    config_path = get_config_path()
    if not config_path.exists():
        return {}

    try:
        content = config_path.read_text()
        return yaml.safe_load(content) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load {config_path}: {e}")
        return {}


def create_default_config() -> bool:
    """
    Create default config.yaml if it doesn't exist.

    Returns:
        True if file was created, False if it already exists
    """
    config_path = get_config_path()
    if config_path.exists():
        return False

    ensure_data_dir()
    config_path.write_text(DEFAULT_CONFIG_YAML)
    return True
