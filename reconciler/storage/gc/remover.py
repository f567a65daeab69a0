"""
Batch Remover

Removes one bounded batch of cleanup candidates and records the outcome in a
CleanupSummary.

- Whole documents are deleted one by one; a document that is already gone
  counts as 0 removed, never as an error, so re-running a sweep is safe.
- Targets with metric fields are read first and their array sizes are
  recorded under "<target>.<field>"; the read is best-effort.
- Entry-level targets are pruned: every offending entry of a parent document
  is collected first, then the parent gets exactly one write with the pruned
  array.

In dry-run mode nothing is written and counts land in summary.preview.
"""

from typing import Callable, Iterable, Optional

from reconciler.configs import get_logger
from reconciler.configs.constants import BATCH_CAP
from reconciler.exceptions import NotFoundError, StorageError
from reconciler.storage.base import DocumentStore
from reconciler.storage.filters import resolve_path
from reconciler.storage.gc.registry import ReferenceTarget
from reconciler.storage.gc.summary import CleanupSummary

logger = get_logger("storage.gc.remover")


class BatchRemover:
    """Deletes or prunes bounded batches of candidates."""

    def __init__(self, store: DocumentStore, batch_cap: int = BATCH_CAP):
        self.store = store
        self.batch_cap = batch_cap

    def _unique_batch(self, ids: Iterable[str]) -> list[str]:
        batch = list(dict.fromkeys(doc_id for doc_id in ids if doc_id))
        if len(batch) > self.batch_cap:
            raise ValueError(f"Batch of {len(batch)} exceeds cap of {self.batch_cap}")
        return batch

    def remove_documents(
        self,
        target: ReferenceTarget,
        ids: Iterable[str],
        summary: CleanupSummary,
        dry_run: bool = False,
    ) -> int:
        """
        Delete whole documents of a target.

        Args:
            target: Cleanup target the ids belong to
            ids: Candidate document ids (deduped; at most batch_cap)
            summary: Summary to record counts and errors into
            dry_run: Count instead of deleting

        Returns:
            Number of documents removed (or that would be removed)
        """
        batch = self._unique_batch(ids)
        removed = 0

        for doc_id in batch:
            metrics = self._read_metrics(target, doc_id) if target.metrics else None

            if dry_run:
                deleted = 1
            else:
                try:
                    deleted = self.store.delete_by_id(target.collection, doc_id)
                except NotFoundError:
                    deleted = 0
                except StorageError as e:
                    logger.warning(f"Failed to delete {target.collection}/{doc_id}: {e}")
                    summary.add_error(target.name, doc_id, str(e))
                    continue

            removed += deleted
            if deleted and metrics:
                for field_name, count in metrics.items():
                    summary.record(f"{target.name}.{field_name}", count, preview=dry_run)

        summary.record(target.name, removed, preview=dry_run)
        if removed and not dry_run:
            logger.info(f"Removed {removed} documents from {target.collection}")
        return removed

    def _read_metrics(self, target: ReferenceTarget, doc_id: str) -> Optional[dict[str, int]]:
        """Count metric arrays of a document; None when it cannot be read."""
        try:
            document = self.store.get_by_id(target.collection, doc_id)
        except NotFoundError:
            return None
        except StorageError as e:
            logger.warning(f"Skipping metrics for {target.collection}/{doc_id}: {e}")
            return None

        metrics = {}
        for field_name in target.metrics:
            value = document.get(field_name)
            metrics[field_name] = len(value) if isinstance(value, list) else 0
        return metrics

    def prune_entries(
        self,
        target: ReferenceTarget,
        ids: Iterable[str],
        is_offending: Callable[[dict], bool],
        summary: CleanupSummary,
        dry_run: bool = False,
    ) -> int:
        """
        Drop offending sub-entries from parent documents of an entry-level target.

        Each parent is read once, all of its offending entries are collected,
        and the pruned array is written back in a single update.

        Args:
            target: Entry-level cleanup target
            ids: Parent document ids (deduped; at most batch_cap)
            is_offending: Predicate selecting entries to drop
            summary: Summary to record counts and errors into
            dry_run: Count instead of writing

        Returns:
            Number of entries removed (or that would be removed)
        """
        path = target.entry_path
        if path is None:
            raise ValueError(f"Target {target.name} has no OBJECT_LIST path")

        batch = self._unique_batch(ids)
        removed = 0

        for doc_id in batch:
            try:
                document = self.store.get_by_id(target.collection, doc_id)
            except NotFoundError:
                continue
            except StorageError as e:
                logger.warning(f"Failed to read {target.collection}/{doc_id}: {e}")
                summary.add_error(target.name, doc_id, str(e))
                continue

            raw = resolve_path(document, path.path)
            entries = raw[0] if raw and isinstance(raw[0], list) else []
            try:
                kept = [entry for entry in entries if not (isinstance(entry, dict) and is_offending(entry))]
            except StorageError as e:
                logger.warning(f"Failed to check entries of {target.collection}/{doc_id}: {e}")
                summary.add_error(target.name, doc_id, str(e))
                continue
            dropped = len(entries) - len(kept)
            if not dropped:
                continue

            if not dry_run:
                try:
                    updated = self.store.update_by_id(target.collection, doc_id, {path.path: kept})
                except StorageError as e:
                    logger.warning(f"Failed to prune {target.collection}/{doc_id}: {e}")
                    summary.add_error(target.name, doc_id, str(e))
                    continue
                if not updated:
                    continue

            removed += dropped

        summary.record(target.name, removed, preview=dry_run)
        if removed and not dry_run:
            logger.info(f"Pruned {removed} entries from {target.collection}")
        return removed

    def pull_member(
        self,
        target: ReferenceTarget,
        field_path: str,
        documents: Iterable[dict],
        member_id: str,
        summary: CleanupSummary,
        dry_run: bool = False,
    ) -> int:
        """
        Remove one member id from a SCALAR_LIST field of each document.

        A document whose list becomes empty is deleted and counted; the
        others are updated in place and not counted.

        Returns:
            Number of documents removed (or that would be removed)
        """
        removed = 0
        for document in documents:
            doc_id = document["_id"]
            raw = resolve_path(document, field_path)
            values = raw[0] if raw and isinstance(raw[0], list) else []
            kept = [value for value in values if value != member_id]
            if len(kept) == len(values):
                continue

            if dry_run:
                removed += 0 if kept else 1
                continue

            try:
                if kept:
                    self.store.update_by_id(target.collection, doc_id, {field_path: kept})
                else:
                    removed += self.store.delete_by_id(target.collection, doc_id)
            except NotFoundError:
                continue
            except StorageError as e:
                logger.warning(f"Failed to pull {member_id} from {target.collection}/{doc_id}: {e}")
                summary.add_error(target.name, doc_id, str(e))

        summary.record(target.name, removed, preview=dry_run)
        return removed
