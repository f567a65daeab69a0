"""
Cascading Deleter

Removes everything one member left behind across all registered targets, then
the member record itself.

Each target becomes one task on the job runner, so collections are cleaned
independently and a failing target never blocks the others. The removal
operation is picked from the target's reference shape:

- whole documents (SCALAR paths): delete where any path equals the member id
- SCALAR_LIST paths: pull the id from the list, delete the document once empty
- OBJECT_LIST path: prune the member's entries from every parent document

Removal hooks run after the fan-out, only for targets that removed at least
one record.
"""

from functools import partial
from typing import Callable, Iterator, Mapping, Optional

from reconciler.configs import get_logger
from reconciler.configs.constants import BATCH_CAP, DEFAULT_CONCURRENCY, MEMBERS_COLLECTION
from reconciler.exceptions import NotFoundError, StorageError
from reconciler.storage.base import DocumentStore
from reconciler.storage.gc.registry import ReferenceMap, ReferenceTarget
from reconciler.storage.gc.remover import BatchRemover
from reconciler.storage.gc.runner import run_with_concurrency
from reconciler.storage.gc.summary import CleanupSummary, merge_summaries
from reconciler.storage.references import ReferenceShape, clean_id

logger = get_logger("storage.gc.cascade")

RemovalHook = Callable[[str, int], None]
"""Called as hook(member_id, removed_count) after a target removed records."""


class CascadingDeleter:
    """Deletes a member and all of its dependent data."""

    def __init__(
        self,
        store: DocumentStore,
        registry: ReferenceMap,
        remover: Optional[BatchRemover] = None,
        members_collection: str = MEMBERS_COLLECTION,
        concurrency: int = DEFAULT_CONCURRENCY,
        batch_cap: int = BATCH_CAP,
        removal_hooks: Optional[Mapping[str, RemovalHook]] = None,
    ):
        self.store = store
        self.registry = registry
        self.remover = remover or BatchRemover(store, batch_cap)
        self.members_collection = members_collection
        self.concurrency = concurrency
        self.batch_cap = batch_cap
        self.removal_hooks = dict(removal_hooks or {})

    def cascade(self, member_id: str, dry_run: bool = False) -> CleanupSummary:
        """
        Remove a member's dependent data from every target, then the member.

        Args:
            member_id: Member to delete
            dry_run: Report counts in summary.preview without writing

        Returns:
            Merged CleanupSummary; per-target failures are in summary.errors
        """
        member_id = clean_id(member_id)
        if not member_id:
            raise ValueError("member_id is required")

        logger.info(f"Cascading delete for member {member_id} (dry_run={dry_run})")

        targets = list(self.registry)
        tasks = [partial(self._remove_target, target, member_id, dry_run) for target in targets]
        results = run_with_concurrency(tasks, self.concurrency)

        summaries = []
        for target, result in zip(targets, results):
            if result.ok:
                summaries.append(result.value)
                continue
            failed = CleanupSummary()
            failed.add_error(target.name, member_id, str(result.error))
            summaries.append(failed)
        summary = merge_summaries(summaries)

        if not dry_run:
            self._run_hooks(member_id, summary)

        summary = summary.merge(self._remove_member(member_id, dry_run))
        logger.info(
            f"Cascade for {member_id} finished: "
            f"removed={summary.total_removed} preview={summary.total_preview} errors={len(summary.errors)}"
        )
        return summary

    def _pages(self, collection: str, where: dict) -> Iterator[list[dict]]:
        """Yield batches of documents matching a filter in _id order."""
        after = None
        while True:
            page = self.store.query(collection, where=where, after=after, limit=self.batch_cap)
            if page:
                yield page
            if len(page) < self.batch_cap:
                return
            after = page[-1]["_id"]

    def _remove_target(self, target: ReferenceTarget, member_id: str, dry_run: bool) -> CleanupSummary:
        summary = CleanupSummary()
        summary.record(target.name, 0, preview=dry_run)

        if target.is_entry_level:
            path = target.entry_path
            for page in self._pages(target.collection, target.member_filter(member_id)):
                self.remover.prune_entries(
                    target,
                    [document["_id"] for document in page],
                    lambda entry: path.entry_id(entry) == member_id,
                    summary,
                    dry_run=dry_run,
                )
            return summary

        where = target.member_filter(member_id, shapes=(ReferenceShape.SCALAR,))
        if where is not None:
            for page in self._pages(target.collection, where):
                self.remover.remove_documents(
                    target,
                    [document["_id"] for document in page],
                    summary,
                    dry_run=dry_run,
                )

        for path in target.paths:
            if path.shape != ReferenceShape.SCALAR_LIST:
                continue
            for page in self._pages(target.collection, {path.path: member_id}):
                self.remover.pull_member(target, path.path, page, member_id, summary, dry_run=dry_run)

        return summary

    def _run_hooks(self, member_id: str, summary: CleanupSummary) -> None:
        for name, hook in self.removal_hooks.items():
            removed = summary.removed.get(name, 0)
            if removed < 1:
                continue
            try:
                hook(member_id, removed)
            except StorageError as e:
                logger.warning(f"Removal hook for {name} failed: {e}")
                summary.add_error(name, member_id, f"Removal hook failed: {e}")

    def _remove_member(self, member_id: str, dry_run: bool) -> CleanupSummary:
        summary = CleanupSummary()
        if dry_run:
            try:
                exists = self.store.count(self.members_collection, {"_id": member_id})
            except StorageError as e:
                summary.add_error(self.members_collection, member_id, str(e))
                exists = 0
            summary.record(self.members_collection, exists, preview=True)
            return summary

        try:
            deleted = self.store.delete_by_id(self.members_collection, member_id)
        except NotFoundError:
            deleted = 0
        except StorageError as e:
            logger.warning(f"Failed to delete member {member_id}: {e}")
            summary.add_error(self.members_collection, member_id, str(e))
            deleted = 0
        summary.record(self.members_collection, deleted)
        return summary
