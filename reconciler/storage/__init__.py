"""
Reconciler Storage Layer

Document store implementations, the filter language and garbage collection.
"""

from reconciler.storage.base import DocumentStore
from reconciler.storage.chromadb import (
    ChromaDocumentStore,
    get_chroma_client,
    get_or_create_collection,
)
from reconciler.storage.filters import DELETE_FIELD, apply_update, matches, resolve_path
from reconciler.storage.memory import InMemoryDocumentStore
from reconciler.storage.references import ReferencePath, ReferenceShape

__all__ = [
    # Stores
    "DocumentStore",
    "InMemoryDocumentStore",
    "ChromaDocumentStore",
    # Client management
    "get_chroma_client",
    "get_or_create_collection",
    # Filters
    "DELETE_FIELD",
    "apply_update",
    "matches",
    "resolve_path",
    # References
    "ReferencePath",
    "ReferenceShape",
]
