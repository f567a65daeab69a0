"""
Cleanup Summary

Per-invocation counts of removed (apply) or previewed (dry run) records,
keyed by cleanup target, plus the per-document errors met on the way.
Summaries from parallel sub-jobs are merged; merge is associative and
commutative so completion order does not matter.
"""

from dataclasses import asdict, dataclass, field
from functools import reduce
from typing import Any, Iterable


@dataclass(frozen=True)
class CleanupError:
    """One failed removal: where, which document, and why."""

    collection: str
    id: str
    message: str


@dataclass
class CleanupSummary:
    """Counts and errors for one cleanup invocation."""

    removed: dict[str, int] = field(default_factory=dict)
    preview: dict[str, int] = field(default_factory=dict)
    errors: list[CleanupError] = field(default_factory=list)

    def record(self, key: str, count: int, preview: bool = False) -> None:
        """Add count to removed[key] (or preview[key] for a dry run)."""
        counts = self.preview if preview else self.removed
        counts[key] = counts.get(key, 0) + count

    def add_error(self, collection: str, doc_id: str, message: str) -> None:
        self.errors.append(CleanupError(collection=collection, id=doc_id or "", message=message))

    def merge(self, other: "CleanupSummary") -> "CleanupSummary":
        """Return a new summary holding both summaries' counts and errors."""
        return CleanupSummary(
            removed=_sum_counts(self.removed, other.removed),
            preview=_sum_counts(self.preview, other.preview),
            errors=[*self.errors, *other.errors],
        )

    @property
    def total_removed(self) -> int:
        return sum(self.removed.values())

    @property
    def total_preview(self) -> int:
        return sum(self.preview.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "removed": dict(self.removed),
            "preview": dict(self.preview),
            "errors": [asdict(error) for error in self.errors],
        }


def _sum_counts(a: dict[str, int], b: dict[str, int]) -> dict[str, int]:
    merged = dict(a)
    for key, count in b.items():
        merged[key] = merged.get(key, 0) + count
    return merged


def merge_summaries(summaries: Iterable[CleanupSummary]) -> CleanupSummary:
    """Fold any number of summaries into one (empty input gives an empty summary)."""
    return reduce(CleanupSummary.merge, summaries, CleanupSummary())
