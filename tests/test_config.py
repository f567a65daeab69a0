"""
Tests for configuration loading and shared services.
"""

import logging

import pytest
import yaml

from reconciler.configs import services
from reconciler.configs.logging import get_logger, is_debug_enabled, resolve_log_file, setup_logging
from reconciler.configs.runtime import DEFAULT_CONFIG, get_full_config, get_store_backend
from reconciler.configs.yaml_config import (
    DEFAULT_CONFIG_YAML,
    create_default_config,
    get_config_path,
    load_yaml_config,
)
from reconciler.storage import InMemoryDocumentStore
from reconciler.storage.gc import DEFAULT_REFERENCE_MAP


@pytest.fixture
def data_dir(temp_dir, monkeypatch):
    """Point the data directory at a fresh temp dir."""
    monkeypatch.setenv("RECONCILER_DATA_PATH", str(temp_dir))
    return temp_dir


def write_yaml(config: dict) -> None:
    get_config_path().parent.mkdir(parents=True, exist_ok=True)
    get_config_path().write_text(yaml.safe_dump(config))


class TestYamlConfig:
    """Tests for config.yaml handling."""

    def test_missing_file_is_empty(self, data_dir):
        assert load_yaml_config() == {}

    def test_load(self, data_dir):
        write_yaml({"runtime": {"concurrency": 5}})

        assert load_yaml_config() == {"runtime": {"concurrency": 5}}

    def test_create_default_once(self, data_dir):
        """Test that the default template is written only when absent."""
        assert create_default_config() is True
        assert create_default_config() is False

        assert get_config_path().read_text() == DEFAULT_CONFIG_YAML
        assert load_yaml_config()["runtime"]["batch_size"] == 100

    def test_invalid_yaml_ignored(self, data_dir):
        get_config_path().write_text("runtime: [unclosed")

        assert load_yaml_config() == {}


class TestRuntimeConfig:
    """Tests for merged runtime configuration."""

    def test_defaults(self, data_dir, monkeypatch):
        monkeypatch.delenv("RECONCILER_STORE", raising=False)

        config = get_full_config()

        assert config["store_backend"] == "chromadb"
        assert config["concurrency"] == DEFAULT_CONFIG["concurrency"]
        assert config["members_collection"] == "members"

    def test_yaml_then_env_priority(self, data_dir, monkeypatch):
        """Test that env vars override YAML, which overrides defaults."""
        write_yaml({
            "store": {"backend": "memory"},
            "runtime": {"concurrency": 5, "batch_size": 50, "unknown": 1},
        })
        monkeypatch.setenv("RECONCILER_CONCURRENCY", "7")
        monkeypatch.setenv("RECONCILER_SWEEP_BATCH_SIZE", "not-a-number")
        monkeypatch.delenv("RECONCILER_STORE", raising=False)

        config = get_full_config()

        assert config["store_backend"] == "memory"
        assert config["concurrency"] == 7
        assert config["batch_size"] == 50
        assert config["sweep_batch_size"] == DEFAULT_CONFIG["sweep_batch_size"]
        assert "unknown" not in config

    def test_store_backend_env_wins(self, monkeypatch):
        monkeypatch.setenv("RECONCILER_STORE", "MEMORY")

        assert get_store_backend({"store": {"backend": "chromadb"}}) == "memory"

    def test_store_backend_ignores_unknown(self, monkeypatch):
        monkeypatch.delenv("RECONCILER_STORE", raising=False)

        assert get_store_backend({"store": {"backend": "postgres"}}) == "chromadb"


class TestServices:
    """Tests for the shared ServiceManager."""

    @pytest.fixture(autouse=True)
    def clean_services(self):
        services.reset_services()
        yield
        services.reset_services()

    def test_memory_backend_store(self):
        assert services.CONFIG["store_backend"] == "memory"
        assert isinstance(services.get_store(), InMemoryDocumentStore)

    def test_default_registry(self):
        assert services.get_registry() is DEFAULT_REFERENCE_MAP

    def test_registry_from_yaml(self, monkeypatch):
        monkeypatch.setitem(services.CONFIG, "_yaml", {
            "reference_map": {"bookings": {"collection": "reservations", "paths": ["memberId"]}},
        })

        assert services.get_registry().names() == ["bookings"]
        assert services.get_engine().registry.names() == ["bookings"]

    def test_set_store_rebuilds_engine(self):
        first = services.get_engine()
        store = InMemoryDocumentStore()

        services.set_store(store)

        assert services.get_store() is store
        assert services.get_engine() is not first
        assert services.get_engine().store is store


class TestLogging:
    """Tests for logging setup."""

    @pytest.fixture(autouse=True)
    def restore_handlers(self):
        logger = logging.getLogger("reconciler")
        handlers, level = list(logger.handlers), logger.level
        yield
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
        for handler in handlers:
            logger.addHandler(handler)
        logger.setLevel(level)

    def test_debug_from_yaml(self, data_dir, monkeypatch):
        monkeypatch.delenv("RECONCILER_DEBUG", raising=False)
        assert is_debug_enabled() is False

        write_yaml({"debug": True})
        assert is_debug_enabled() is True

        monkeypatch.setenv("RECONCILER_DEBUG", "false")
        assert is_debug_enabled() is False

    def test_log_file_in_data_dir(self, data_dir, monkeypatch):
        monkeypatch.delenv("RECONCILER_LOG_FILE", raising=False)
        assert resolve_log_file() == data_dir / "reconciler.log"

        monkeypatch.setenv("RECONCILER_LOG_FILE", "-")
        assert resolve_log_file() is None

    def test_file_handler_receives_component_logs(self, temp_dir):
        log_file = temp_dir / "logs" / "reconciler.log"

        setup_logging(debug=True, log_file=log_file)
        get_logger("storage.gc.scanner").debug("scanning reservations")
        for handler in logging.getLogger("reconciler").handlers:
            handler.flush()

        assert "[reconciler.storage.gc.scanner] scanning reservations" in log_file.read_text()

    def test_repeated_setup_does_not_stack_handlers(self, temp_dir):
        setup_logging(debug=False, log_file=temp_dir / "a.log")
        setup_logging(debug=False, log_file=temp_dir / "a.log")

        assert len(logging.getLogger("reconciler").handlers) == 2
        assert logging.getLogger("chromadb").level == logging.WARNING
