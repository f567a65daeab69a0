"""
Garbage Collection

Reconciliation of member references across the document store:
- Reference map registry (which collections point at members, and how)
- Orphan scanning with a join strategy and a full-scan fallback
- Bounded batch removal and array-entry pruning
- Cascading member deletes
- Time-boxed profile refresh sweeps
"""

from reconciler.storage.gc.cascade import CascadingDeleter
from reconciler.storage.gc.engine import ReconciliationEngine
from reconciler.storage.gc.registry import (
    DEFAULT_REFERENCE_MAP,
    ReferenceMap,
    ReferenceTarget,
)
from reconciler.storage.gc.remover import BatchRemover
from reconciler.storage.gc.runner import TaskResult, run_with_concurrency
from reconciler.storage.gc.scanner import (
    FullScanStrategy,
    JoinScanStrategy,
    OrphanScanner,
    ScanPage,
)
from reconciler.storage.gc.summary import CleanupError, CleanupSummary, merge_summaries
from reconciler.storage.gc.sweep import SweepResult, sweep_refresh

__all__ = [
    # Registry
    "DEFAULT_REFERENCE_MAP",
    "ReferenceMap",
    "ReferenceTarget",
    # Scanning
    "OrphanScanner",
    "JoinScanStrategy",
    "FullScanStrategy",
    "ScanPage",
    # Removal
    "BatchRemover",
    "CascadingDeleter",
    # Jobs and results
    "run_with_concurrency",
    "TaskResult",
    "CleanupError",
    "CleanupSummary",
    "merge_summaries",
    # Sweep
    "SweepResult",
    "sweep_refresh",
    # Facade
    "ReconciliationEngine",
]
