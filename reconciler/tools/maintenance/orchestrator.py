"""
Cleanup Orchestration

Shared logic for maintenance operations - coordinates reconciliation across
every registered target, test account removal and battle record resets.
Used by both CLI tools and HTTP endpoints.
"""

from dataclasses import dataclass
from functools import partial
from typing import Any, Iterable, Optional

from reconciler.configs import get_logger
from reconciler.configs.constants import BATCH_CAP, DEFAULT_BATCH_SIZE, TEST_MEMBER_TAG
from reconciler.exceptions import StorageError, UnknownTargetError
from reconciler.storage.filters import DELETE_FIELD
from reconciler.storage.gc import (
    CleanupSummary,
    ReconciliationEngine,
    ReferenceTarget,
    merge_summaries,
    run_with_concurrency,
)

logger = get_logger("maintenance.orchestrator")

# Collections wiped by a battle record reset
BATTLE_COLLECTIONS = ("memberPveHistory", "pvpMatches", "pvpInvites", "pvpLeaderboard", "pvpSeasons")

# Battle history cached on live member profiles
PROFILE_HISTORY_KEY = "pveProfileHistory"
PROFILE_HISTORY_FIELDS = ("pveProfile.battleHistory", "pveProfile.skillHistory")


@dataclass
class ReconciliationResult:
    """Result of a reconciliation pass over many targets."""

    summary: CleanupSummary
    """Merged summary of every target."""

    target_count: int
    """Number of targets scanned."""

    dry_run: bool
    """Whether counts are a preview."""

    @property
    def total_orphaned(self) -> int:
        return self.summary.total_preview if self.dry_run else self.summary.total_removed

    def to_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "target_count": self.target_count,
            "total_orphaned": self.total_orphaned,
            **self.summary.to_dict(),
        }


@dataclass
class CleanupTestMembersResult:
    """Result of removing tagged test accounts."""

    member_ids: list[str]
    """Members the cleanup applied to."""

    summary: CleanupSummary
    """Merged cascade summary."""

    dry_run: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "dry_run": self.dry_run,
            "member_count": len(self.member_ids),
            "member_ids": list(self.member_ids),
            **self.summary.to_dict(),
        }


def run_reconciliation(
    engine: ReconciliationEngine,
    dry_run: bool = True,
    batch_size: int = DEFAULT_BATCH_SIZE,
    targets: Optional[Iterable[str]] = None,
) -> ReconciliationResult:
    """
    Scan registered targets for orphans and remove (or count) them.

    Targets run concurrently on the job runner; a failing target is reported
    in the summary errors and never stops the others.

    Args:
        engine: Reconciliation engine
        dry_run: If True, only report what would be removed
        batch_size: Scan page size
        targets: Target names to scan (all registered targets when omitted)

    Returns:
        ReconciliationResult

    Raises:
        UnknownTargetError: a requested target is not registered
    """
    names = list(targets) if targets else engine.registry.names()
    unknown = [name for name in names if name not in engine.registry]
    if unknown:
        raise UnknownTargetError("Unknown cleanup targets", {"targets": unknown})

    logger.info(f"Running reconciliation: targets={len(names)}, dry_run={dry_run}")

    engine.begin_pass()
    tasks = [
        partial(engine.reconcile_target, name, preview_only=dry_run, batch_size=batch_size)
        for name in names
    ]
    summaries = []
    for name, result in zip(names, run_with_concurrency(tasks, engine.concurrency)):
        if result.ok:
            summaries.append(result.value)
        else:
            failed = CleanupSummary()
            failed.add_error(name, "", str(result.error))
            summaries.append(failed)

    summary = merge_summaries(summaries)
    logger.info(
        f"Reconciliation finished: removed={summary.total_removed} "
        f"preview={summary.total_preview} errors={len(summary.errors)}"
    )
    return ReconciliationResult(summary=summary, target_count=len(names), dry_run=dry_run)


def find_test_members(engine: ReconciliationEngine, tag: str = TEST_MEMBER_TAG) -> list[str]:
    """Ids of members carrying the test tag, ascending."""
    member_ids = []
    after = None
    while True:
        page = engine.store.query(
            engine.members_collection,
            where={"tags": tag},
            after=after,
            limit=BATCH_CAP,
        )
        member_ids.extend(document["_id"] for document in page)
        if len(page) < BATCH_CAP:
            return member_ids
        after = page[-1]["_id"]


def cleanup_test_members(
    engine: ReconciliationEngine,
    dry_run: bool = True,
    tag: str = TEST_MEMBER_TAG,
) -> CleanupTestMembersResult:
    """
    Cascade-delete every member tagged as a test account.

    Args:
        engine: Reconciliation engine
        dry_run: If True, only report what would be removed
        tag: Tag marking test accounts

    Returns:
        CleanupTestMembersResult
    """
    member_ids = find_test_members(engine, tag)
    logger.info(f"Cleaning up {len(member_ids)} test members (dry_run={dry_run})")

    summary = merge_summaries(engine.cascade_delete(member_id, dry_run=dry_run) for member_id in member_ids)
    return CleanupTestMembersResult(member_ids=member_ids, summary=summary, dry_run=dry_run)


def reset_battle_records(engine: ReconciliationEngine, dry_run: bool = True) -> CleanupSummary:
    """
    Remove all PVE/PVP battle data.

    Battle collections are emptied outright. Battle and skill history cached
    on member profiles is found with a field-existence query rather than the
    orphan scanner: it lives on live members, so it is never orphaned.

    Args:
        engine: Reconciliation engine
        dry_run: If True, only report what would be removed

    Returns:
        CleanupSummary keyed by collection, plus "pveProfileHistory"
    """
    logger.info(f"Resetting battle records (dry_run={dry_run})")
    summary = CleanupSummary()

    for collection in BATTLE_COLLECTIONS:
        target = ReferenceTarget(name=collection, collection=collection, paths=())
        summary.record(collection, 0, preview=dry_run)
        after = None
        try:
            while True:
                page = engine.store.query(collection, after=after, limit=engine.batch_cap)
                if page:
                    engine.remover.remove_documents(
                        target,
                        [document["_id"] for document in page],
                        summary,
                        dry_run=dry_run,
                    )
                if len(page) < engine.batch_cap:
                    break
                after = page[-1]["_id"]
        except StorageError as e:
            logger.warning(f"Failed to reset {collection}: {e}")
            summary.add_error(collection, "", str(e))

    summary = summary.merge(_clear_profile_history(engine, dry_run))
    logger.info(f"Battle reset finished: removed={summary.total_removed} preview={summary.total_preview}")
    return summary


def _clear_profile_history(engine: ReconciliationEngine, dry_run: bool) -> CleanupSummary:
    summary = CleanupSummary()
    summary.record(PROFILE_HISTORY_KEY, 0, preview=dry_run)
    where = {"$or": [{field_path: {"$exists": True}} for field_path in PROFILE_HISTORY_FIELDS]}
    clear = {field_path: DELETE_FIELD for field_path in PROFILE_HISTORY_FIELDS}

    after = None
    try:
        while True:
            page = engine.store.query(engine.members_collection, where=where, after=after, limit=engine.batch_cap)
            for member in page:
                if dry_run:
                    summary.record(PROFILE_HISTORY_KEY, 1, preview=True)
                    continue
                try:
                    cleared = engine.store.update_by_id(engine.members_collection, member["_id"], clear)
                except StorageError as e:
                    summary.add_error(PROFILE_HISTORY_KEY, member["_id"], str(e))
                    continue
                summary.record(PROFILE_HISTORY_KEY, cleared)
            if len(page) < engine.batch_cap:
                break
            after = page[-1]["_id"]
    except StorageError as e:
        logger.warning(f"Failed to clear profile battle history: {e}")
        summary.add_error(PROFILE_HISTORY_KEY, "", str(e))
    return summary
