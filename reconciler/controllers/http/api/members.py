"""
Member Endpoints

HTTP endpoints for cascading member deletes, the profile refresh sweep and
the reference map listing.
"""

from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from reconciler.configs import get_logger
from reconciler.configs.services import CONFIG, get_engine, get_registry

logger = get_logger("http.api.members")

router = APIRouter()


class SweepRequest(BaseModel):
    """Request model for one sweep batch. Totals are carried by the caller."""

    cursor: str = ""
    batch_size: int = Field(default_factory=lambda: CONFIG["sweep_batch_size"], ge=1)
    max_duration_ms: int = Field(default_factory=lambda: CONFIG["sweep_max_duration_ms"], ge=0)
    processed_total: int = Field(default=0, ge=0)
    refreshed_total: int = Field(default=0, ge=0)
    failed_total: int = Field(default=0, ge=0)


@router.delete("/members/{member_id}")
def delete_member(
    member_id: str,
    dry_run: bool = Query(False, description="Only report what would be removed"),
) -> dict[str, Any]:
    """
    Delete a member and all of its dependent records.

    Args:
        member_id: Member to delete
        dry_run: Only report what would be removed
    """
    logger.info(f"Member delete requested: {member_id} (dry_run={dry_run})")

    try:
        summary = get_engine().cascade_delete(member_id, dry_run=dry_run)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": not summary.errors,
        "member_id": member_id,
        "dry_run": dry_run,
        **summary.to_dict(),
    }


@router.post("/sweep/refresh")
def sweep_refresh(request: SweepRequest) -> dict[str, Any]:
    """
    Run one time-boxed batch of the profile refresh sweep.

    Call again with the returned cursor and totals while has_more is true.

    Args:
        request: SweepRequest with cursor, budget and running totals
    """
    result = get_engine().sweep_refresh(
        cursor=request.cursor,
        batch_size=request.batch_size,
        max_duration_ms=request.max_duration_ms,
        processed_total=request.processed_total,
        refreshed_total=request.refreshed_total,
        failed_total=request.failed_total,
    )
    return result.to_dict()


@router.get("/targets")
def list_targets() -> dict[str, Any]:
    """List registered cleanup targets and their reference paths."""
    return {
        "targets": [
            {
                "name": target.name,
                "collection": target.collection,
                "paths": [
                    {"path": path.path, "shape": path.shape.value, "key": path.key}
                    for path in target.paths
                ],
                "metrics": list(target.metrics),
                "description": target.description,
            }
            for target in get_registry()
        ],
    }
