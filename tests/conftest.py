"""
Pytest fixtures for reconciler tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add project root to path for reconciler imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment
os.environ["RECONCILER_DATA_PATH"] = tempfile.mkdtemp(prefix="reconciler_test_data_")
os.environ["RECONCILER_DB_PATH"] = "/tmp/reconciler_test_db"
os.environ["RECONCILER_STORE"] = "memory"


def seed(store, collection: str, *documents: dict) -> None:
    """Insert documents into a collection."""
    for document in documents:
        store.put(collection, document)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def store():
    """Empty in-memory document store with join support."""
    from reconciler.storage import InMemoryDocumentStore

    return InMemoryDocumentStore()


@pytest.fixture
def legacy_store():
    """Empty in-memory document store without join support."""
    from reconciler.storage import InMemoryDocumentStore

    return InMemoryDocumentStore(join_enabled=False)


@pytest.fixture
def members(store):
    """Store seeded with live members A and B."""
    seed(store, "members", {"_id": "A", "nickName": "Alice"}, {"_id": "B", "nickName": "Bob"})
    return store


@pytest.fixture
def engine(store):
    """Reconciliation engine over the in-memory store with the default reference map."""
    from reconciler.storage.gc import DEFAULT_REFERENCE_MAP, ReconciliationEngine

    return ReconciliationEngine(store, registry=DEFAULT_REFERENCE_MAP)


@pytest.fixture
def temp_chroma_client():
    """Create a temporary ChromaDB client for testing."""
    import chromadb
    from chromadb.config import Settings

    with tempfile.TemporaryDirectory() as tmpdir:
        client = chromadb.PersistentClient(
            path=tmpdir,
            settings=Settings(anonymized_telemetry=False),
        )
        yield client
