"""
Reconciler Runtime Configuration

Runtime defaults and configuration merging logic.
Combines defaults, YAML config, and environment variables.
"""

import os

from reconciler.configs.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_CONCURRENCY,
    MEMBERS_COLLECTION,
    SWEEP_BATCH_SIZE,
    SWEEP_MAX_DURATION_MS,
    TEST_MEMBER_TAG,
)
from reconciler.configs.yaml_config import load_yaml_config

# --- Default Runtime Configuration ---

DEFAULT_CONFIG = {
    "store_backend": "chromadb",
    "members_collection": MEMBERS_COLLECTION,
    "concurrency": DEFAULT_CONCURRENCY,
    "batch_size": DEFAULT_BATCH_SIZE,
    "sweep_batch_size": SWEEP_BATCH_SIZE,
    "sweep_max_duration_ms": SWEEP_MAX_DURATION_MS,
    "test_member_tag": TEST_MEMBER_TAG,
}

# Integer settings that may be overridden by RECONCILER_<NAME> env vars
_INT_ENV_OVERRIDES = (
    "concurrency",
    "batch_size",
    "sweep_batch_size",
    "sweep_max_duration_ms",
)


def get_store_backend(yaml_config: dict | None = None) -> str:
    """
    Get the configured document store backend.

    Priority:
    1. RECONCILER_STORE env var
    2. store.backend from config.yaml
    3. Default: "chromadb"

    Returns:
        "chromadb" or "memory"
    """
    env_backend = os.environ.get("RECONCILER_STORE", "").lower()
    if env_backend in ("chromadb", "memory"):
        return env_backend

    if yaml_config is None:
        yaml_config = load_yaml_config()
    store_config = yaml_config.get("store") or {}
    config_backend = str(store_config.get("backend", "")).lower()
    if config_backend in ("chromadb", "memory"):
        return config_backend

    return "chromadb"


def get_full_config() -> dict:
    """
    Get full configuration merged from defaults, YAML, and environment.

    Priority (highest wins):
    1. Environment variables
    2. YAML config file
    3. DEFAULT_CONFIG

    Returns:
        Merged configuration dictionary
    """
    config = dict(DEFAULT_CONFIG)

    yaml_config = load_yaml_config()

    # Merge runtime section from YAML
    runtime = yaml_config.get("runtime") or {}
    for key, value in runtime.items():
        if key in config:
            config[key] = value

    # Keep the full YAML around for store/reference_map sections
    config["_yaml"] = yaml_config

    config["store_backend"] = get_store_backend(yaml_config)

    # Environment overrides
    for key in _INT_ENV_OVERRIDES:
        env_value = os.environ.get(f"RECONCILER_{key.upper()}")
        if env_value:
            try:
                config[key] = int(env_value)
            except ValueError:
                pass

    if os.environ.get("RECONCILER_MEMBERS_COLLECTION"):
        config["members_collection"] = os.environ["RECONCILER_MEMBERS_COLLECTION"]

    return config
