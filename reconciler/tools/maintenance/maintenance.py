"""
Maintenance Tools

JSON-returning tools for storage maintenance - orphan cleanup, member deletes
and profile refresh sweeps.
"""

import json
from typing import Literal, Optional

from reconciler.configs import get_logger
from reconciler.configs.services import CONFIG, get_engine
from reconciler.tools.maintenance.orchestrator import run_reconciliation

logger = get_logger("tools.maintenance")


def cleanup_storage(
    action: Literal["preview", "execute"] = "preview",
    targets: Optional[list[str]] = None,
    batch_size: Optional[int] = None,
) -> str:
    """
    Clean up records that reference deleted members.

    **When to use this tool:**
    - After members were deleted without a cascade
    - Periodic maintenance to reclaim storage

    Args:
        action: "preview" shows what would be deleted, "execute" performs deletion
        targets: Cleanup targets to scan (all registered targets when omitted)
        batch_size: Scan page size (configured default when omitted)

    Returns:
        JSON with cleanup results by target
    """
    logger.info(f"Cleanup storage: action={action}, targets={targets or 'all'}")

    dry_run = action == "preview"
    if batch_size is None:
        batch_size = CONFIG["batch_size"]

    try:
        result = run_reconciliation(get_engine(), dry_run=dry_run, batch_size=batch_size, targets=targets)

        response = {
            "status": "success",
            "action": action,
            **result.to_dict(),
        }

        if dry_run and result.total_orphaned > 0:
            response["message"] = f"Found {result.total_orphaned} orphaned records. Run with action='execute' to delete."

        return json.dumps(response, indent=2)

    except Exception as e:
        logger.error(f"Cleanup storage error: {e}")
        return json.dumps({
            "status": "error",
            "error": str(e),
        })


def delete_member(
    member_id: str,
    dry_run: bool = False,
) -> str:
    """
    Delete a member and everything that references it.

    Args:
        member_id: The member to delete
        dry_run: Only report what would be removed

    Returns:
        JSON with per-collection counts and errors
    """
    if not member_id:
        return json.dumps({
            "status": "error",
            "error": "member_id parameter is required",
        })

    logger.info(f"Delete member: {member_id} (dry_run={dry_run})")

    try:
        summary = get_engine().cascade_delete(member_id, dry_run=dry_run)
        return json.dumps({
            "status": "success",
            "member_id": member_id,
            "dry_run": dry_run,
            **summary.to_dict(),
        }, indent=2)

    except Exception as e:
        logger.error(f"Delete member error: {e}")
        return json.dumps({
            "status": "error",
            "error": str(e),
        })


def refresh_profiles(
    cursor: str = "",
    batch_size: Optional[int] = None,
    max_duration_ms: Optional[int] = None,
    processed_total: int = 0,
    refreshed_total: int = 0,
    failed_total: int = 0,
) -> str:
    """
    Run one time-boxed batch of the member profile refresh sweep.

    Invoke again with the returned cursor and totals while has_more is true.

    Args:
        cursor: Cursor returned by the previous batch ("" to start)
        batch_size: Members per batch (configured default when omitted)
        max_duration_ms: Time budget (configured default when omitted)
        processed_total: Running processed count
        refreshed_total: Running refreshed count
        failed_total: Running failed count

    Returns:
        JSON with the new cursor and running totals
    """
    logger.info(f"Refresh profiles: cursor={cursor!r}")

    try:
        result = get_engine().sweep_refresh(
            cursor=cursor,
            batch_size=CONFIG["sweep_batch_size"] if batch_size is None else batch_size,
            max_duration_ms=CONFIG["sweep_max_duration_ms"] if max_duration_ms is None else max_duration_ms,
            processed_total=processed_total,
            refreshed_total=refreshed_total,
            failed_total=failed_total,
        )
        return json.dumps({"status": "success", **result.to_dict()}, indent=2)

    except Exception as e:
        logger.error(f"Refresh profiles error: {e}")
        return json.dumps({
            "status": "error",
            "error": str(e),
        })
