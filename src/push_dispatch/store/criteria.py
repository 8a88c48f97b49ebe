"""Criteria matching for record documents.

A small subset of the document-query language used by record stores:

- ``{"field": value}``: equality (dotted paths reach into nested mappings)
- ``{"field": {"$exists": bool}}``: presence; a ``None`` value counts as absent
- ``{"field": {"$ne": value}}``: inequality
- ``{"field": {"$in": [values]}}``: membership
- ``{"$and": [criteria, ...]}``: conjunction

A list-valued field matches equality and ``$in`` when any element matches.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Final

from push_dispatch.types import Criteria

__all__ = ["CriteriaError", "matches"]

_MISSING: Final = object()
_OPERATORS: Final[frozenset[str]] = frozenset({"$exists", "$ne", "$in"})


class CriteriaError(ValueError):
    """Raised for malformed or unsupported criteria."""


def matches(document: Mapping[str, object], criteria: Criteria | None) -> bool:
    """Return True when the document satisfies every clause of the criteria.

    Examples:
        >>> matches({"id": "a", "sent_at": None}, {"sent_at": {"$exists": False}})
        True
        >>> matches({"recipients": ["t1", "t2"]}, {"recipients": "t2"})
        True
    """
    if not criteria:
        return True

    for key, condition in criteria.items():
        if key == "$and":
            if not isinstance(condition, Sequence) or isinstance(condition, (str, bytes)):
                raise CriteriaError("$and expects a list of criteria")
            for clause in condition:
                if not isinstance(clause, Mapping):
                    raise CriteriaError("$and clauses must be mappings")
                if not matches(document, clause):  # pyright: ignore[reportUnknownArgumentType]
                    return False
        elif key.startswith("$"):
            raise CriteriaError(f"Unsupported criteria operator: {key}")
        elif not _match_field(_resolve(document, key), condition):
            return False
    return True


def _resolve(document: Mapping[str, object], path: str) -> object:
    current: object = document
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]  # pyright: ignore[reportUnknownVariableType]
    return current  # pyright: ignore[reportUnknownVariableType]


def _is_operator_mapping(condition: object) -> bool:
    return (
        isinstance(condition, Mapping)
        and bool(condition)
        and all(isinstance(k, str) and k.startswith("$") for k in condition)  # pyright: ignore[reportUnknownVariableType]
    )


def _match_field(value: object, condition: object) -> bool:
    if not _is_operator_mapping(condition):
        return _equals(value, condition)

    assert isinstance(condition, Mapping)
    for operator, operand in condition.items():  # pyright: ignore[reportUnknownVariableType]
        if operator not in _OPERATORS:
            raise CriteriaError(f"Unsupported criteria operator: {operator}")
        if operator == "$exists":
            present = value is not _MISSING and value is not None
            if present != bool(operand):  # pyright: ignore[reportUnknownArgumentType]
                return False
        elif operator == "$ne":
            if _equals(value, operand):
                return False
        elif operator == "$in":
            if not isinstance(operand, Sequence) or isinstance(operand, (str, bytes)):
                raise CriteriaError("$in expects a list of values")
            if not any(_equals(value, candidate) for candidate in operand):  # pyright: ignore[reportUnknownVariableType]
                return False
    return True


def _equals(value: object, expected: object) -> bool:
    if value is _MISSING:
        return expected is None
    if isinstance(value, list) and not isinstance(expected, list):
        return expected in value
    return value == expected
