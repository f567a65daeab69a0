"""
Reference Paths

Where a dependent record keeps member ids, and in which shape:

- SCALAR:      {"memberId": "m1"}
- SCALAR_LIST: {"memberIds": ["m1", "m2"]}
- OBJECT_LIST: {"entries": [{"memberId": "m1", "score": 10}, ...]}

A record is dangling on a SCALAR or SCALAR_LIST path when every id it holds
there is missing from the live member set. OBJECT_LIST paths are judged per
entry: any entry pointing at a missing member is an orphan entry.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Container, Optional

from reconciler.storage.filters import flatten_values, resolve_path


class ReferenceShape(str, Enum):
    """Structural form of a member reference."""

    SCALAR = "scalar"
    SCALAR_LIST = "scalar_list"
    OBJECT_LIST = "object_list"


def clean_id(value: Any) -> Optional[str]:
    """Return a usable member id or None for empty/non-string values."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


@dataclass(frozen=True)
class ReferencePath:
    """A dotted path into a record that holds member ids."""

    path: str
    shape: ReferenceShape = ReferenceShape.SCALAR
    key: str = "memberId"
    """Id key inside each sub-object (OBJECT_LIST only)."""

    @property
    def is_entry_level(self) -> bool:
        return self.shape == ReferenceShape.OBJECT_LIST

    @property
    def field_path(self) -> str:
        """Dotted path usable in a filter to reach the ids themselves."""
        if self.is_entry_level:
            return f"{self.path}.{self.key}"
        return self.path

    def entries(self, document: dict) -> list[dict]:
        """Sub-objects of an OBJECT_LIST path (empty for other shapes)."""
        if not self.is_entry_level:
            return []
        return [item for item in flatten_values(resolve_path(document, self.path)) if isinstance(item, dict)]

    def entry_id(self, entry: dict) -> Optional[str]:
        return clean_id(entry.get(self.key))

    def extract_ids(self, document: dict) -> list[str]:
        """Resolve the member ids this path holds in a document."""
        if self.is_entry_level:
            raw = [self.entry_id(entry) for entry in self.entries(document)]
        elif self.shape == ReferenceShape.SCALAR_LIST:
            raw = [clean_id(value) for value in flatten_values(resolve_path(document, self.path))]
        else:
            raw = [clean_id(value) for value in resolve_path(document, self.path) if not isinstance(value, list)]
        return [member_id for member_id in raw if member_id]

    def is_dangling(self, document: dict, live_ids: Container[str]) -> bool:
        """
        Check whether a document is orphaned through this path.

        Documents that hold no id on this path are never orphans.
        """
        ids = self.extract_ids(document)
        if not ids:
            return False
        if self.is_entry_level:
            return any(member_id not in live_ids for member_id in ids)
        return all(member_id not in live_ids for member_id in ids)
