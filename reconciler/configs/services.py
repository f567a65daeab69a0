"""
Shared Services

Thread-safe lazy-initialized services shared across all tools and HTTP endpoints.
Uses singleton pattern with double-checked locking for thread safety.
"""

from threading import RLock
from typing import Optional

from reconciler.configs.logging import get_logger
from reconciler.configs.runtime import get_full_config
from reconciler.storage import ChromaDocumentStore, DocumentStore, InMemoryDocumentStore, get_chroma_client
from reconciler.storage.gc import DEFAULT_REFERENCE_MAP, ReconciliationEngine, ReferenceMap

logger = get_logger("services")


class ServiceManager:
    """
    Thread-safe singleton manager for all shared services.

    Provides lazy initialization of the document store, reference map and
    reconciliation engine - ensuring each is created only once even under
    concurrent access. The engine lives as long as the process, so its
    join capability probe runs once.
    """

    _instance: Optional["ServiceManager"] = None
    _lock = RLock()

    def __new__(cls) -> "ServiceManager":
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if self._initialized:
            return

        self._store: Optional[DocumentStore] = None
        self._registry: Optional[ReferenceMap] = None
        self._engine: Optional[ReconciliationEngine] = None
        self._resource_lock = RLock()
        self._initialized = True

    @property
    def store(self) -> DocumentStore:
        """Get or create the configured document store."""
        if self._store is None:
            with self._resource_lock:
                if self._store is None:
                    self._store = _create_store(CONFIG)
        return self._store

    @property
    def registry(self) -> ReferenceMap:
        """Get the reference map (config.yaml override or the built-in map)."""
        if self._registry is None:
            with self._resource_lock:
                if self._registry is None:
                    reference_map = (CONFIG.get("_yaml") or {}).get("reference_map")
                    if reference_map:
                        self._registry = ReferenceMap.from_config(reference_map)
                        logger.info(f"Loaded {len(self._registry)} reference targets from config")
                    else:
                        self._registry = DEFAULT_REFERENCE_MAP
        return self._registry

    @property
    def engine(self) -> ReconciliationEngine:
        """Get or create the reconciliation engine."""
        if self._engine is None:
            with self._resource_lock:
                if self._engine is None:
                    self._engine = ReconciliationEngine(
                        self.store,
                        registry=self.registry,
                        members_collection=CONFIG["members_collection"],
                        concurrency=CONFIG["concurrency"],
                    )
        return self._engine

    def reset(self) -> None:
        """Reset all services (for testing)."""
        with self._resource_lock:
            self._store = None
            self._registry = None
            self._engine = None

    def set_store(self, store: DocumentStore) -> None:
        """Set the store directly (for testing)."""
        with self._resource_lock:
            self._store = store
            self._engine = None  # Rebuild engine on the new store


def _create_store(config: dict) -> DocumentStore:
    backend = config.get("store_backend", "chromadb")
    if backend == "memory":
        logger.info("Using in-memory document store")
        return InMemoryDocumentStore()

    store_config = (config.get("_yaml") or {}).get("store") or {}
    client = get_chroma_client(store_config.get("path"))
    logger.info("Using ChromaDB document store")
    return ChromaDocumentStore(client)


# Module-level singleton instance
_services = ServiceManager()

# Runtime configuration (mutable)
CONFIG = get_full_config()


# --- Public API ---


def get_store() -> DocumentStore:
    """Get the document store."""
    return _services.store


def get_registry() -> ReferenceMap:
    """Get the reference map."""
    return _services.registry


def get_engine() -> ReconciliationEngine:
    """Get the reconciliation engine."""
    return _services.engine


def reset_services() -> None:
    """Reset all lazy-initialized services (for testing)."""
    _services.reset()


def set_store(store: DocumentStore) -> None:
    """Set the document store directly (for testing)."""
    _services.set_store(store)
