"""
Document Store Interface

The storage collaborator consumed by the reconciliation engine. Stores are
schema-less and have no foreign keys; every document carries a string "_id".

Error contract:
- get_by_id raises NotFoundError for a missing document
- delete_by_id / update_by_id return 0 for a missing document (never raise)
- any other failure surfaces as TransientStoreError
- join_on_missing is optional and raises CapabilityUnavailableError when absent
"""

from abc import ABC, abstractmethod
from typing import Optional

from reconciler.exceptions import CapabilityUnavailableError
from reconciler.storage.references import ReferencePath


class DocumentStore(ABC):
    """Abstract document store."""

    @abstractmethod
    def get_by_id(self, collection: str, doc_id: str) -> dict:
        """Fetch one document. Raises NotFoundError if absent."""

    @abstractmethod
    def delete_by_id(self, collection: str, doc_id: str) -> int:
        """Delete one document. Returns 1 if deleted, 0 if it did not exist."""

    @abstractmethod
    def update_by_id(self, collection: str, doc_id: str, data: dict) -> int:
        """
        Partially update one document.

        Dotted keys set nested fields; arrays are replaced whole;
        DELETE_FIELD removes a field.

        Returns:
            1 if updated, 0 if the document did not exist
        """

    @abstractmethod
    def put(self, collection: str, document: dict) -> str:
        """Insert or replace a document keyed by its "_id". Returns the id."""

    @abstractmethod
    def query(
        self,
        collection: str,
        where: Optional[dict] = None,
        after: Optional[str] = None,
        limit: int = 100,
    ) -> list[dict]:
        """
        Fetch documents ordered by "_id" ascending.

        Args:
            collection: Collection name
            where: Optional filter (see reconciler.storage.filters)
            after: Only documents with "_id" strictly greater than this
            limit: Maximum number of documents

        Returns:
            List of documents
        """

    @abstractmethod
    def count(self, collection: str, where: Optional[dict] = None) -> int:
        """Count documents matching a filter."""

    def join_on_missing(
        self,
        collection: str,
        path: ReferencePath,
        reference_collection: str,
        after: Optional[str] = None,
        limit: int = 100,
    ) -> list[str]:
        """
        Left-outer-join a collection against a reference collection on a path,
        keeping only rows without a match.

        Returns:
            Ids of documents dangling on the path, ascending, "_id" > after,
            at most limit of them
        """
        raise CapabilityUnavailableError(
            f"{type(self).__name__} does not support join_on_missing",
            collection=collection,
        )
