"""
ChromaDB Document Store

Initialization and collection management for ChromaDB, plus a DocumentStore
adapter on top of it. Each logical collection maps to one ChromaDB collection;
the document body is stored as JSON in the "documents" field.

ChromaDB has no joins, so this store never offers join_on_missing and the
orphan scanner runs its full-scan strategy against it. Ordering comes from a
per-collection _id index; filters are evaluated client side on the decoded
window.
"""

import json
import os
import threading
from bisect import bisect_left, bisect_right
from typing import Callable, Iterator, Optional, TypeVar

import chromadb
from chromadb.config import Settings

from reconciler.configs.paths import DB_PATH
from reconciler.exceptions import NotFoundError, TransientStoreError
from reconciler.storage.base import DocumentStore
from reconciler.storage.filters import apply_update, matches

T = TypeVar("T")

# Page size for client-side scans of a ChromaDB collection
FETCH_PAGE_SIZE = 500

# Documents are never searched by similarity; a constant vector keeps
# ChromaDB from invoking its embedding function.
_PLACEHOLDER_EMBEDDING = [1.0]


def get_chroma_client(persist_dir: Optional[str] = None) -> chromadb.PersistentClient:
    """
    Initialize persistent ChromaDB client.

    Args:
        persist_dir: Directory for persistence (defaults to DB_PATH)

    Returns:
        ChromaDB PersistentClient instance
    """
    path = persist_dir or DB_PATH
    path = os.path.expanduser(path)
    os.makedirs(path, exist_ok=True)
    return chromadb.PersistentClient(
        path=path,
        settings=Settings(anonymized_telemetry=False),
    )


def get_or_create_collection(
    client: chromadb.PersistentClient,
    name: str,
) -> chromadb.Collection:
    """
    Get or create a ChromaDB collection.

    Args:
        client: ChromaDB client
        name: Collection name

    Returns:
        ChromaDB Collection
    """
    return client.get_or_create_collection(name=name)


class ChromaDocumentStore(DocumentStore):
    """
    DocumentStore backed by a ChromaDB client.

    Keeps a sorted _id index per collection so cursor pages only decode the
    documents they return. The index is rebuilt whenever its size disagrees
    with the collection count.
    """

    def __init__(self, client: chromadb.PersistentClient):
        self.client = client
        self._ids: dict[str, list[str]] = {}
        self._lock = threading.Lock()

    def _collection(self, name: str) -> chromadb.Collection:
        return get_or_create_collection(self.client, name)

    def _call(self, collection: str, fn: Callable[[], T], doc_id: Optional[str] = None) -> T:
        """Run a ChromaDB call, surfacing failures as TransientStoreError."""
        try:
            return fn()
        except NotFoundError:
            raise
        except Exception as e:
            raise TransientStoreError(str(e), collection=collection, document_id=doc_id) from e

    @staticmethod
    def _decode(doc_id: str, text: Optional[str]) -> dict:
        document = json.loads(text) if text else {}
        document["_id"] = doc_id
        return document

    def _sorted_ids(self, collection: str) -> list[str]:
        """Sorted ids of a collection, from the index or a fresh id-only listing."""
        chroma = self._collection(collection)
        total = self._call(collection, chroma.count)
        with self._lock:
            cached = self._ids.get(collection)
            if cached is not None and len(cached) == total:
                return cached

        ids: list[str] = []
        offset = 0
        while True:
            page = self._call(
                collection,
                lambda: chroma.get(limit=FETCH_PAGE_SIZE, offset=offset, include=["metadatas"]),
            )
            ids.extend(page["ids"])
            if len(page["ids"]) < FETCH_PAGE_SIZE:
                break
            offset += len(page["ids"])
        ids.sort()
        with self._lock:
            self._ids[collection] = ids
        return ids

    def _ids_after(self, collection: str, after: Optional[str], limit: int) -> list[str]:
        ids = self._sorted_ids(collection)
        with self._lock:
            start = bisect_right(ids, after) if after is not None else 0
            return ids[start:start + limit]

    def _fetch(self, collection: str, ids: list[str]) -> list[dict]:
        """Decode the documents for a window of ids, keeping their order."""
        chroma = self._collection(collection)
        result = self._call(collection, lambda: chroma.get(ids=ids, include=["documents"]))
        texts = dict(zip(result["ids"], result["documents"]))
        return [self._decode(doc_id, texts[doc_id]) for doc_id in ids if doc_id in texts]

    def _iter_documents(
        self,
        collection: str,
        after: Optional[str] = None,
        window: int = FETCH_PAGE_SIZE,
    ) -> Iterator[dict]:
        """Yield documents in _id order, decoding one window at a time."""
        cursor = after
        while True:
            ids = self._ids_after(collection, cursor, window)
            if not ids:
                return
            yield from self._fetch(collection, ids)
            if len(ids) < window:
                return
            cursor = ids[-1]

    def get_by_id(self, collection: str, doc_id: str) -> dict:
        chroma = self._collection(collection)
        result = self._call(collection, lambda: chroma.get(ids=[doc_id], include=["documents"]), doc_id)
        if not result["ids"]:
            raise NotFoundError(f"Document not found: {doc_id}", collection=collection, document_id=doc_id)
        return self._decode(doc_id, result["documents"][0])

    def delete_by_id(self, collection: str, doc_id: str) -> int:
        chroma = self._collection(collection)
        existing = self._call(collection, lambda: chroma.get(ids=[doc_id], include=["metadatas"]), doc_id)
        if not existing["ids"]:
            return 0
        self._call(collection, lambda: chroma.delete(ids=[doc_id]), doc_id)
        with self._lock:
            ids = self._ids.get(collection)
            if ids is not None:
                index = bisect_left(ids, doc_id)
                if index < len(ids) and ids[index] == doc_id:
                    del ids[index]
        return 1

    def update_by_id(self, collection: str, doc_id: str, data: dict) -> int:
        try:
            document = self.get_by_id(collection, doc_id)
        except NotFoundError:
            return 0
        self.put(collection, apply_update(document, data))
        return 1

    def put(self, collection: str, document: dict) -> str:
        doc_id = document["_id"]
        body = {key: value for key, value in document.items() if key != "_id"}
        chroma = self._collection(collection)
        self._call(
            collection,
            lambda: chroma.upsert(
                ids=[doc_id],
                documents=[json.dumps(body, sort_keys=True, default=str)],
                embeddings=[_PLACEHOLDER_EMBEDDING],
            ),
            doc_id,
        )
        with self._lock:
            ids = self._ids.get(collection)
            if ids is not None:
                index = bisect_left(ids, doc_id)
                if index == len(ids) or ids[index] != doc_id:
                    ids.insert(index, doc_id)
        return doc_id

    def query(
        self,
        collection: str,
        where: Optional[dict] = None,
        after: Optional[str] = None,
        limit: int = 100,
    ) -> list[dict]:
        if limit < 1:
            return []
        selected = []
        window = min(limit, FETCH_PAGE_SIZE)
        for document in self._iter_documents(collection, after, window):
            if matches(document, where):
                selected.append(document)
                if len(selected) >= limit:
                    break
        return selected

    def count(self, collection: str, where: Optional[dict] = None) -> int:
        if not where:
            chroma = self._collection(collection)
            return self._call(collection, chroma.count)

        condition = where.get("_id") if len(where) == 1 else None
        if isinstance(condition, str):
            chroma = self._collection(collection)
            result = self._call(collection, lambda: chroma.get(ids=[condition], include=["metadatas"]), condition)
            return len(result["ids"])
        if isinstance(condition, dict) and set(condition) == {"$gt"} and isinstance(condition["$gt"], str):
            ids = self._sorted_ids(collection)
            with self._lock:
                return len(ids) - bisect_right(ids, condition["$gt"])

        return sum(1 for document in self._iter_documents(collection) if matches(document, where))
