"""
Reconciliation Engine

Caller-facing facade over the garbage-collection pieces:

- scan_orphans: find and remove (or preview) orphans of one target
- cascade_delete: remove one member and everything it left behind
- sweep_refresh: time-boxed resumable refresh of derived member data

The engine holds no global state; store, registry and hooks are injected so
tests and deployments can wire their own.
"""

from typing import Callable, Mapping, Optional, Sequence

from reconciler.configs import get_logger
from reconciler.configs.constants import (
    BATCH_CAP,
    DEFAULT_BATCH_SIZE,
    DEFAULT_CONCURRENCY,
    MEMBERS_COLLECTION,
    SWEEP_BATCH_SIZE,
    SWEEP_MAX_DURATION_MS,
)
from reconciler.exceptions import StorageError
from reconciler.storage.base import DocumentStore
from reconciler.storage.gc.cascade import CascadingDeleter, RemovalHook
from reconciler.storage.gc.registry import DEFAULT_REFERENCE_MAP, ReferenceMap, ReferenceTarget
from reconciler.storage.gc.remover import BatchRemover
from reconciler.storage.gc.scanner import OrphanScanner
from reconciler.storage.gc.summary import CleanupSummary
from reconciler.storage.gc.sweep import Refresher, SweepResult, sweep_refresh
from reconciler.storage.references import ReferencePath

logger = get_logger("storage.gc.engine")


class ReconciliationEngine:
    """Orphan cleanup, cascading deletes and profile sweeps over one store."""

    def __init__(
        self,
        store: DocumentStore,
        registry: ReferenceMap = DEFAULT_REFERENCE_MAP,
        members_collection: str = MEMBERS_COLLECTION,
        concurrency: int = DEFAULT_CONCURRENCY,
        batch_cap: int = BATCH_CAP,
        refresher: Optional[Refresher] = None,
        removal_hooks: Optional[Mapping[str, RemovalHook]] = None,
    ):
        # Imported here: reconciler.profiles depends on this package
        from reconciler.profiles import MemberProfileRefresher, default_removal_hooks

        self.store = store
        self.registry = registry
        self.members_collection = members_collection
        self.concurrency = concurrency
        self.batch_cap = batch_cap

        if removal_hooks is None:
            removal_hooks = default_removal_hooks(store, members_collection)

        self.scanner = OrphanScanner(store, members_collection, batch_cap)
        self.remover = BatchRemover(store, batch_cap)
        self.deleter = CascadingDeleter(
            store,
            registry,
            remover=self.remover,
            members_collection=members_collection,
            concurrency=concurrency,
            batch_cap=batch_cap,
            removal_hooks=removal_hooks,
        )
        self.refresher = refresher or MemberProfileRefresher(store, registry, members_collection)

    def begin_pass(self) -> None:
        """Start a cleanup pass; see OrphanScanner.begin_pass."""
        self.scanner.begin_pass()

    def resolve_target(self, name: str, paths: Optional[Sequence[ReferencePath]] = None) -> ReferenceTarget:
        """
        Look up a registered target, or build an ad-hoc one for explicit paths.

        Unknown names resolve to a target over the collection of the same name
        with no paths, which scans nothing.
        """
        registered = self.registry.get(name)
        if paths is None:
            if registered is not None:
                return registered
            return ReferenceTarget(name=name, collection=name, paths=())

        target = ReferenceTarget(
            name=name,
            collection=registered.collection if registered else name,
            paths=tuple(paths),
            metrics=registered.metrics if registered else (),
        )
        target.validate()
        return target

    def scan_orphans(
        self,
        target: str,
        paths: Optional[Sequence[ReferencePath]] = None,
        preview_only: bool = False,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> CleanupSummary:
        """
        Find orphans of one target and remove them (or count them).

        Args:
            target: Registered target name, or a collection name with paths
            paths: Override the registered reference paths
            preview_only: Count into summary.preview instead of removing
            batch_size: Scan page size (capped at batch_cap)

        Returns:
            CleanupSummary for the target
        """
        self.begin_pass()
        return self.reconcile_target(target, paths, preview_only, batch_size)

    def reconcile_target(
        self,
        name: str,
        paths: Optional[Sequence[ReferencePath]] = None,
        preview_only: bool = False,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> CleanupSummary:
        """
        Scan one target within the current pass.

        Unlike scan_orphans, the scanner's cached live member set is kept, so
        many targets can share one pass.
        """
        target = self.resolve_target(name, paths)
        summary = CleanupSummary()
        summary.record(target.name, 0, preview=preview_only)

        if not target.paths:
            logger.info(f"No reference paths for {target.name}, skipping")
            return summary

        is_orphan_entry = self._orphan_entry_check(target) if target.is_entry_level else None

        try:
            for page in self.scanner.iter_pages(target.collection, target.paths, limit=batch_size):
                if is_orphan_entry is not None:
                    self.remover.prune_entries(target, page.ids, is_orphan_entry, summary, dry_run=preview_only)
                else:
                    self.remover.remove_documents(target, page.ids, summary, dry_run=preview_only)
        except StorageError as e:
            logger.warning(f"Scan of {target.collection} aborted: {e}")
            summary.add_error(target.name, "", str(e))

        counts = summary.preview if preview_only else summary.removed
        logger.info(f"Reconciled {target.name}: {'preview' if preview_only else 'removed'}={counts[target.name]}")
        return summary

    def _orphan_entry_check(self, target: ReferenceTarget) -> Callable[[dict], bool]:
        """Entry predicate with one member lookup per distinct id."""
        path = target.entry_path
        known: dict[str, bool] = {}

        def is_orphan_entry(entry: dict) -> bool:
            member_id = path.entry_id(entry)
            if not member_id:
                return False
            if member_id not in known:
                known[member_id] = self.scanner.member_exists(member_id)
            return not known[member_id]

        return is_orphan_entry

    def cascade_delete(self, member_id: str, dry_run: bool = False) -> CleanupSummary:
        """Remove a member and all of its dependent data."""
        return self.deleter.cascade(member_id, dry_run=dry_run)

    def sweep_refresh(
        self,
        cursor: str = "",
        batch_size: int = SWEEP_BATCH_SIZE,
        max_duration_ms: int = SWEEP_MAX_DURATION_MS,
        processed_total: int = 0,
        refreshed_total: int = 0,
        failed_total: int = 0,
        **kwargs,
    ) -> SweepResult:
        """Refresh the next batch of member profiles after a cursor."""
        return sweep_refresh(
            self.store,
            self.refresher,
            cursor=cursor,
            batch_size=batch_size,
            max_duration_ms=max_duration_ms,
            processed_total=processed_total,
            refreshed_total=refreshed_total,
            failed_total=failed_total,
            members_collection=self.members_collection,
            **kwargs,
        )
