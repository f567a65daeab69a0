"""
Cleanup Endpoints

HTTP endpoints for orphan reconciliation, test account removal and battle
record resets.
"""

from typing import Any, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from reconciler.configs import get_logger
from reconciler.configs.constants import BATCH_CAP
from reconciler.configs.services import CONFIG, get_engine
from reconciler.exceptions import ConfigurationError
from reconciler.tools.maintenance import (
    cleanup_test_members,
    reset_battle_records,
    run_reconciliation,
)

logger = get_logger("http.api.cleanup")

router = APIRouter()


class CleanupRequest(BaseModel):
    """Request model for orphan cleanup."""

    targets: Optional[list[str]] = None
    batch_size: int = Field(default_factory=lambda: CONFIG["batch_size"], ge=1, le=BATCH_CAP)
    dry_run: bool = True


class DryRunRequest(BaseModel):
    """Request model for operations that only take a dry_run flag."""

    dry_run: bool = True


@router.post("/cleanup")
def cleanup(request: CleanupRequest) -> dict[str, Any]:
    """
    Remove (or preview) records that reference deleted members.

    Args:
        request: CleanupRequest with optional targets, batch size and dry_run flag
    """
    logger.info(f"Cleanup requested: targets={request.targets or 'all'}, dry_run={request.dry_run}")

    try:
        result = run_reconciliation(
            get_engine(),
            dry_run=request.dry_run,
            batch_size=request.batch_size,
            targets=request.targets,
        )
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success": not result.summary.errors,
        **result.to_dict(),
    }


@router.post("/cleanup/test-members")
def cleanup_test_accounts(request: DryRunRequest) -> dict[str, Any]:
    """
    Cascade-delete (or preview) every member tagged as a test account.

    Args:
        request: DryRunRequest
    """
    logger.info(f"Test member cleanup requested: dry_run={request.dry_run}")

    result = cleanup_test_members(get_engine(), dry_run=request.dry_run, tag=CONFIG["test_member_tag"])
    return {
        "success": not result.summary.errors,
        **result.to_dict(),
    }


@router.post("/cleanup/battle-records")
def cleanup_battle_records(request: DryRunRequest) -> dict[str, Any]:
    """
    Remove (or preview) all PVE/PVP battle records.

    Args:
        request: DryRunRequest
    """
    logger.info(f"Battle record reset requested: dry_run={request.dry_run}")

    summary = reset_battle_records(get_engine(), dry_run=request.dry_run)
    return {
        "success": not summary.errors,
        "dry_run": request.dry_run,
        **summary.to_dict(),
    }
