"""
Document Filters

A small Mongo-like filter language evaluated client side:

    {"memberId": "m1"}                              equality (array contains)
    {"entries.memberId": "m1"}                      descends through arrays
    {"$or": [{"inviterId": "m1"}, {"opponentId": "m1"}]}
    {"roles": {"$in": ["admin", "developer"]}}
    {"_id": {"$gt": "cursor"}}
    {"pveProfile.battleHistory": {"$exists": True}}

Also holds the partial-update helper shared by the store implementations.
"""

from typing import Any, Optional


class _DeleteField:
    """Sentinel for update_by_id: removes the field instead of setting it."""

    def __repr__(self) -> str:
        return "DELETE_FIELD"

    def __copy__(self) -> "_DeleteField":
        return self

    def __deepcopy__(self, memo: dict) -> "_DeleteField":
        return self


DELETE_FIELD = _DeleteField()


def resolve_path(document: Any, path: str) -> list[Any]:
    """
    Collect the raw values stored at a dotted path.

    Arrays met on the way are descended into, so "entries.memberId"
    yields one value per entry. A missing path yields an empty list.
    """
    current = [document]
    for part in path.split("."):
        found = []
        for value in current:
            if isinstance(value, dict):
                if part in value:
                    found.append(value[part])
            elif isinstance(value, list):
                for item in value:
                    if isinstance(item, dict) and part in item:
                        found.append(item[part])
        current = found
    return current


def flatten_values(raw: list[Any]) -> list[Any]:
    """Flatten one level of arrays so equality means 'array contains'."""
    values = []
    for value in raw:
        if isinstance(value, list):
            values.extend(value)
        else:
            values.append(value)
    return values


def matches(document: dict, where: Optional[dict]) -> bool:
    """
    Check a document against a filter.

    Args:
        document: Document to test
        where: Filter dict (None or empty matches everything)

    Returns:
        True if every clause matches
    """
    if not where:
        return True

    for key, condition in where.items():
        if key == "$or":
            if not any(matches(document, clause) for clause in condition):
                return False
            continue
        if key == "$and":
            if not all(matches(document, clause) for clause in condition):
                return False
            continue
        if not _match_condition(resolve_path(document, key), condition):
            return False
    return True


def _match_condition(raw: list[Any], condition: Any) -> bool:
    values = flatten_values(raw)
    if not isinstance(condition, dict):
        return condition in values

    for operator, operand in condition.items():
        if operator == "$exists":
            ok = bool(raw) == bool(operand)
        elif operator == "$eq":
            ok = operand in values
        elif operator == "$ne":
            ok = operand not in values
        elif operator == "$in":
            ok = any(value in operand for value in values)
        elif operator == "$gt":
            ok = any(isinstance(value, type(operand)) and value > operand for value in values)
        else:
            raise ValueError(f"Unsupported filter operator: {operator}")
        if not ok:
            return False
    return True


def apply_update(document: dict, data: dict) -> dict:
    """
    Merge a partial update into a document in place.

    Dotted keys set nested fields, creating intermediate objects.
    A value of DELETE_FIELD removes the field. Arrays are replaced whole.

    Returns:
        The updated document
    """
    for key, value in data.items():
        if key == "_id":
            continue
        parts = key.split(".")
        target = document
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                if value is DELETE_FIELD:
                    break
                child = {}
                target[part] = child
            target = child
        else:
            if value is DELETE_FIELD:
                target.pop(parts[-1], None)
            else:
                target[parts[-1]] = value
    return document
