"""
In-Memory Document Store

Thread-safe ephemeral store. Supports the join_on_missing capability, so it
exercises the primary orphan scan strategy; pass join_enabled=False to make it
behave like a store without joins.
"""

import copy
import threading
from typing import Optional

from reconciler.exceptions import NotFoundError
from reconciler.storage.base import DocumentStore
from reconciler.storage.filters import apply_update, matches
from reconciler.storage.references import ReferencePath


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed document store. Documents are copied on the way in and out."""

    def __init__(self, join_enabled: bool = True):
        self._collections: dict[str, dict[str, dict]] = {}
        self._lock = threading.RLock()
        self.join_enabled = join_enabled

    def _docs(self, collection: str) -> dict[str, dict]:
        return self._collections.setdefault(collection, {})

    def get_by_id(self, collection: str, doc_id: str) -> dict:
        with self._lock:
            document = self._docs(collection).get(doc_id)
            if document is None:
                raise NotFoundError(f"Document not found: {doc_id}", collection=collection, document_id=doc_id)
            return copy.deepcopy(document)

    def delete_by_id(self, collection: str, doc_id: str) -> int:
        with self._lock:
            return 1 if self._docs(collection).pop(doc_id, None) is not None else 0

    def update_by_id(self, collection: str, doc_id: str, data: dict) -> int:
        with self._lock:
            document = self._docs(collection).get(doc_id)
            if document is None:
                return 0
            apply_update(document, copy.deepcopy(data))
            return 1

    def put(self, collection: str, document: dict) -> str:
        doc_id = document["_id"]
        with self._lock:
            self._docs(collection)[doc_id] = copy.deepcopy(document)
        return doc_id

    def query(
        self,
        collection: str,
        where: Optional[dict] = None,
        after: Optional[str] = None,
        limit: int = 100,
    ) -> list[dict]:
        with self._lock:
            selected = [
                doc
                for doc_id, doc in sorted(self._docs(collection).items())
                if (after is None or doc_id > after) and matches(doc, where)
            ]
            return copy.deepcopy(selected[:limit])

    def count(self, collection: str, where: Optional[dict] = None) -> int:
        with self._lock:
            return sum(1 for doc in self._docs(collection).values() if matches(doc, where))

    def join_on_missing(
        self,
        collection: str,
        path: ReferencePath,
        reference_collection: str,
        after: Optional[str] = None,
        limit: int = 100,
    ) -> list[str]:
        if not self.join_enabled:
            return super().join_on_missing(collection, path, reference_collection, after, limit)

        with self._lock:
            reference_ids = set(self._docs(reference_collection))
            dangling = [
                doc_id
                for doc_id, doc in sorted(self._docs(collection).items())
                if (after is None or doc_id > after) and path.is_dangling(doc, reference_ids)
            ]
            return dangling[:limit]
