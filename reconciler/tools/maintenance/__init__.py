"""
Maintenance Tools

Storage management tools - orphan cleanup, member deletes and profile sweeps.
"""

from reconciler.tools.maintenance.maintenance import (
    cleanup_storage,
    delete_member,
    refresh_profiles,
)
from reconciler.tools.maintenance.orchestrator import (
    CleanupTestMembersResult,
    ReconciliationResult,
    cleanup_test_members,
    reset_battle_records,
    run_reconciliation,
)

__all__ = [
    # Tools
    "cleanup_storage",
    "delete_member",
    "refresh_profiles",
    # Orchestration (shared logic for CLI and HTTP)
    "ReconciliationResult",
    "CleanupTestMembersResult",
    "run_reconciliation",
    "cleanup_test_members",
    "reset_battle_records",
]
