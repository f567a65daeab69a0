"""
Orphan Scanner

Finds documents whose member references no longer resolve, one page at a time.

Two strategies share one contract, scan(collection, paths, cursor, limit):

- JoinScanStrategy asks the store to left-outer-join the collection against
  the members collection per path and keep unmatched rows. Ids from all paths
  are unioned, deduped, sorted and truncated to the limit.
- FullScanStrategy loads the entire live member id set once, then pages the
  collection in _id order and tests each document locally.

The strategy is chosen once by probing the store's join capability. A join
that later reports the capability missing demotes the scanner to the full
scan for good; any other join failure falls back for that call only.

Preview and apply both walk iter_pages(), so a dry run counts exactly what an
apply would remove (absent concurrent writes).
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterator, Optional, Sequence

from reconciler.configs import get_logger
from reconciler.configs.constants import (
    BATCH_CAP,
    LIVE_SET_WARN_THRESHOLD,
    MEMBER_PAGE_SIZE,
    MEMBERS_COLLECTION,
)
from reconciler.exceptions import CapabilityUnavailableError, NotFoundError, StorageError
from reconciler.storage.base import DocumentStore
from reconciler.storage.references import ReferencePath

logger = get_logger("storage.gc.scanner")


@dataclass
class ScanPage:
    """One page of orphan candidates."""

    ids: list[str]
    next_cursor: Optional[str]
    """Cursor for the following page; None once the collection is exhausted."""

    @property
    def has_more(self) -> bool:
        return self.next_cursor is not None


class ScanStrategy(ABC):
    """Candidate discovery algorithm."""

    name = "base"

    @abstractmethod
    def scan(
        self,
        collection: str,
        paths: Sequence[ReferencePath],
        cursor: Optional[str],
        limit: int,
    ) -> ScanPage:
        """Return up to `limit` orphan ids greater than `cursor`, ascending."""


class JoinScanStrategy(ScanStrategy):
    """Set-based detection through the store's join_on_missing capability."""

    name = "join"

    def __init__(self, store: DocumentStore, members_collection: str = MEMBERS_COLLECTION):
        self.store = store
        self.members_collection = members_collection

    def scan(self, collection, paths, cursor, limit):
        candidates: set[str] = set()
        for path in paths:
            candidates.update(self.store.join_on_missing(
                collection,
                path,
                self.members_collection,
                after=cursor,
                limit=limit,
            ))
        ids = sorted(candidates)[:limit]
        next_cursor = ids[-1] if len(ids) == limit else None
        return ScanPage(ids=ids, next_cursor=next_cursor)


class FullScanStrategy(ScanStrategy):
    """
    Legacy detection: in-memory live member set plus a sequential collection scan.

    The live set is unbounded; it holds every member id in memory.
    """

    name = "full_scan"

    def __init__(
        self,
        store: DocumentStore,
        members_collection: str = MEMBERS_COLLECTION,
        page_size: int = MEMBER_PAGE_SIZE,
    ):
        self.store = store
        self.members_collection = members_collection
        self.page_size = page_size
        self._live_ids: Optional[frozenset[str]] = None
        self._lock = threading.Lock()

    @property
    def live_ids(self) -> frozenset[str]:
        """Live member ids, loaded once via full pagination."""
        if self._live_ids is None:
            with self._lock:
                if self._live_ids is None:
                    self._live_ids = self._load_live_ids()
        return self._live_ids

    def reset(self) -> None:
        """Forget the cached live set so the next scan reloads it."""
        with self._lock:
            self._live_ids = None

    def _load_live_ids(self) -> frozenset[str]:
        ids: set[str] = set()
        cursor = None
        while True:
            page = self.store.query(self.members_collection, after=cursor, limit=self.page_size)
            ids.update(doc["_id"] for doc in page)
            if len(page) < self.page_size:
                break
            cursor = page[-1]["_id"]
        if len(ids) > LIVE_SET_WARN_THRESHOLD:
            logger.warning(f"Live member set holds {len(ids)} ids in memory")
        logger.debug(f"Loaded {len(ids)} live member ids")
        return frozenset(ids)

    def scan(self, collection, paths, cursor, limit):
        live_ids = self.live_ids
        fetch = min(limit, self.page_size)
        ids: list[str] = []
        after = cursor
        while len(ids) < limit:
            page = self.store.query(collection, after=after, limit=fetch)
            for document in page:
                if any(path.is_dangling(document, live_ids) for path in paths):
                    ids.append(document["_id"])
                    if len(ids) >= limit:
                        return ScanPage(ids=ids, next_cursor=ids[-1])
            if len(page) < fetch:
                break
            after = page[-1]["_id"]
        return ScanPage(ids=ids, next_cursor=None)


class OrphanScanner:
    """
    Pages orphan candidates out of a collection.

    The join capability is probed on first use and the chosen strategy is
    kept for the scanner's lifetime.
    """

    def __init__(
        self,
        store: DocumentStore,
        members_collection: str = MEMBERS_COLLECTION,
        batch_cap: int = BATCH_CAP,
    ):
        self.store = store
        self.members_collection = members_collection
        self.batch_cap = batch_cap
        self.join = JoinScanStrategy(store, members_collection)
        self.fallback = FullScanStrategy(store, members_collection)
        self._strategy: Optional[ScanStrategy] = None
        self._lock = threading.Lock()

    @property
    def strategy(self) -> ScanStrategy:
        if self._strategy is None:
            with self._lock:
                if self._strategy is None:
                    self._strategy = self._probe()
        return self._strategy

    def _probe(self) -> ScanStrategy:
        try:
            self.store.join_on_missing(
                self.members_collection,
                ReferencePath("_id"),
                self.members_collection,
                limit=1,
            )
        except CapabilityUnavailableError as e:
            logger.warning(f"Join capability unavailable, using full scan: {e}")
            return self.fallback
        except StorageError as e:
            logger.warning(f"Join probe failed, using full scan: {e}")
            return self.fallback
        logger.info("Join capability available, using set-based orphan scan")
        return self.join

    def begin_pass(self) -> None:
        """
        Start a new cleanup pass.

        Drops the full scan's cached live member set so members created or
        deleted since the last pass are seen.
        """
        self.fallback.reset()

    def _demote(self, reason: Exception) -> None:
        with self._lock:
            if self._strategy is not self.fallback:
                logger.warning(f"Join capability lost, switching to full scan: {reason}")
                self._strategy = self.fallback

    def scan(
        self,
        collection: str,
        paths: Sequence[ReferencePath],
        cursor: Optional[str] = None,
        limit: int = BATCH_CAP,
    ) -> ScanPage:
        """
        Return one page of orphaned document ids.

        Args:
            collection: Collection to scan
            paths: Reference paths holding member ids
            cursor: Only ids strictly greater than this
            limit: Page size (capped at batch_cap)

        Returns:
            ScanPage; empty without touching the store when paths is empty
        """
        if not paths:
            logger.debug(f"No reference paths for {collection}, nothing to scan")
            return ScanPage(ids=[], next_cursor=None)

        limit = max(1, min(limit, self.batch_cap))
        strategy = self.strategy
        if strategy is self.join:
            try:
                return self.join.scan(collection, paths, cursor, limit)
            except CapabilityUnavailableError as e:
                self._demote(e)
            except StorageError as e:
                logger.warning(f"Join scan of {collection} failed, falling back for this page: {e}")
        return self.fallback.scan(collection, paths, cursor, limit)

    def iter_pages(
        self,
        collection: str,
        paths: Sequence[ReferencePath],
        limit: int = BATCH_CAP,
        cursor: Optional[str] = None,
    ) -> Iterator[ScanPage]:
        """
        Lazily yield non-empty pages until the collection is exhausted.

        Restartable: pass the cursor of the last consumed page. Finite, since
        every page advances the cursor past the ids it returned.
        """
        while True:
            page = self.scan(collection, paths, cursor=cursor, limit=limit)
            if page.ids:
                yield page
            if not page.has_more:
                return
            cursor = page.next_cursor

    def member_exists(self, member_id: str) -> bool:
        """
        Check one member id against the live set.

        Uses the cached live set when the full scan is active, otherwise a
        point lookup.
        """
        if self.strategy is self.fallback:
            return member_id in self.fallback.live_ids
        try:
            self.store.get_by_id(self.members_collection, member_id)
        except NotFoundError:
            return False
        return True
