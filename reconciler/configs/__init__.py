"""
Reconciler Configuration Module

Re-exports commonly used functions for cleaner imports across the codebase.
"""

# Logging (most commonly used)
from reconciler.configs.logging import get_logger, setup_logging

# Paths
from reconciler.configs.paths import get_data_path, ensure_data_dir, DB_PATH

# Constants
from reconciler.configs.constants import (
    BATCH_CAP,
    MEMBERS_COLLECTION,
)

# YAML config
from reconciler.configs.yaml_config import (
    DEFAULT_CONFIG_YAML,
    get_config_path,
    load_yaml_config,
    create_default_config,
)

# Runtime
from reconciler.configs.runtime import (
    DEFAULT_CONFIG,
    get_store_backend,
    get_full_config,
)

# Note: services.py is NOT imported here to avoid circular imports.
# Services should be imported directly: from reconciler.configs.services import ...

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Paths
    "get_data_path",
    "ensure_data_dir",
    "DB_PATH",
    # Constants
    "BATCH_CAP",
    "MEMBERS_COLLECTION",
    # YAML config
    "DEFAULT_CONFIG_YAML",
    "get_config_path",
    "load_yaml_config",
    "create_default_config",
    # Runtime
    "DEFAULT_CONFIG",
    "get_store_backend",
    "get_full_config",
]
