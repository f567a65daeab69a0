"""
Profile Refresh Sweep

Time-boxed, resumable walk over all members in _id order. Each invocation
refreshes at most one batch and stops early once its time budget is spent;
the caller persists the returned cursor and invokes again while has_more is
True. Chaining invocations from an empty cursor visits every member that
existed when the sweep began exactly once.
"""

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional

from reconciler.configs import get_logger
from reconciler.configs.constants import MEMBERS_COLLECTION, SWEEP_BATCH_SIZE, SWEEP_MAX_DURATION_MS
from reconciler.exceptions import NotFoundError, StorageError
from reconciler.storage.base import DocumentStore

logger = get_logger("storage.gc.sweep")

Refresher = Callable[[str], bool]
"""Refreshes one member; returns True when something was written."""


@dataclass
class SweepResult:
    """Outcome of one sweep invocation. Counters are running totals."""

    cursor: str
    has_more: bool
    processed: int = 0
    refreshed: int = 0
    failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)
    remaining: Optional[int] = None
    """Members after the cursor; None when the count could not be taken."""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def sweep_refresh(
    store: DocumentStore,
    refresh: Refresher,
    cursor: str = "",
    batch_size: int = SWEEP_BATCH_SIZE,
    max_duration_ms: int = SWEEP_MAX_DURATION_MS,
    processed_total: int = 0,
    refreshed_total: int = 0,
    failed_total: int = 0,
    members_collection: str = MEMBERS_COLLECTION,
    clock: Callable[[], float] = time.monotonic,
) -> SweepResult:
    """
    Refresh the next batch of members after a cursor.

    Args:
        store: Document store holding the members collection
        refresh: Per-member refresh callable
        cursor: Last member id handled by the previous invocation ("" to start)
        batch_size: Members fetched per invocation
        max_duration_ms: Time budget; checked after each member
        processed_total: Running processed count carried by the caller
        refreshed_total: Running refreshed count carried by the caller
        failed_total: Running failed count carried by the caller
        members_collection: Collection to sweep
        clock: Monotonic clock in seconds

    Returns:
        SweepResult with the new cursor and updated running totals
    """
    start = clock()
    batch_size = max(1, batch_size)

    try:
        page = store.query(members_collection, after=cursor or None, limit=batch_size + 1)
    except StorageError as e:
        logger.warning(f"Sweep could not fetch members after {cursor!r}: {e}")
        return SweepResult(
            cursor=cursor,
            has_more=True,
            processed=processed_total,
            refreshed=refreshed_total,
            failed=failed_total,
            errors=[{"memberId": "", "message": str(e)}],
        )

    ids = [document["_id"] for document in page]
    batch = ids[:batch_size]
    beyond = len(ids) > batch_size

    last = cursor
    processed = refreshed = failed = 0
    errors: list[dict[str, str]] = []

    for member_id in batch:
        try:
            if refresh(member_id):
                refreshed += 1
        except NotFoundError:
            logger.debug(f"Member {member_id} vanished during sweep")
        except Exception as e:
            logger.warning(f"Failed to refresh member {member_id}: {e}")
            failed += 1
            errors.append({"memberId": member_id, "message": str(e)})
        processed += 1
        last = member_id

        if (clock() - start) * 1000 >= max_duration_ms:
            break

    has_more = processed < len(batch) or beyond

    try:
        where = {"_id": {"$gt": last}} if last else None
        remaining = store.count(members_collection, where)
    except StorageError as e:
        logger.warning(f"Sweep could not count remaining members: {e}")
        remaining = None

    logger.info(
        f"Sweep batch done: processed={processed} refreshed={refreshed} "
        f"failed={failed} cursor={last!r} has_more={has_more}"
    )
    return SweepResult(
        cursor=last,
        has_more=has_more,
        processed=processed_total + processed,
        refreshed=refreshed_total + refreshed,
        failed=failed_total + failed,
        errors=errors,
        remaining=remaining,
    )
