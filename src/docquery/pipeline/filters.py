"""
Filter expression builder for aggregation $match stages.

Comparison helpers use STANDARD MongoDB query operators and each returns a
single-field predicate wrapped in a ``FilterGroup``:

    equal("status", "active")        -> {"status": {"$eq": "active"}}
    is_("deleted", False)            -> {"deleted": False}
    is_in("role", ["admin", "staff"]) -> {"role": {"$in": ["admin", "staff"]}}
    or_([equal("a", 1), equal("b", 2)])
                                     -> {"$or": [{"a": {"$eq": 1}}, {"b": {"$eq": 2}}]}

A ``Filter`` collects an optional $text clause, AND-ed predicates and
OR-groups. It is owned by one builder and compiled once into a match
document by ``build_match_document``.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Union

from ..errors import ValidationError

logger = logging.getLogger("docquery.filters")


@dataclass(frozen=True)
class Leaf:
    """A single-field predicate document."""

    document: dict[str, Any]

    def __post_init__(self) -> None:
        if not isinstance(self.document, dict) or len(self.document) != 1:
            raise ValidationError("A Leaf holds exactly one top-level field")
        _check_field(next(iter(self.document)))

    def to_document(self) -> dict[str, Any]:
        return dict(self.document)


@dataclass(frozen=True)
class Or:
    """Alternatives combined with a logical OR."""

    alternatives: tuple[dict[str, Any], ...]

    def to_document(self) -> dict[str, Any]:
        return {"$or": [dict(alt) for alt in self.alternatives]}


FilterGroup = Union[Leaf, Or]


def _check_field(column: str) -> None:
    if not isinstance(column, str) or not column.strip():
        raise ValidationError("Field name must be a non-empty string")


def when(column: str, operator: str | None, value: Any) -> Leaf:
    """
    Build a single-field predicate.

    Args:
        column: Document field (dotted paths allowed)
        operator: Query operator such as "$eq", or None for raw equality
        value: Comparison value

    Returns:
        Leaf wrapping {column: value} or {column: {operator: value}}
    """
    _check_field(column)
    if operator is None:
        return Leaf({column: value})
    if not operator.startswith("$"):
        raise ValidationError(f"Operator must start with '$': {operator!r}")
    return Leaf({column: {operator: value}})


def _as_list(column: str, values: Any) -> list[Any]:
    if isinstance(values, (str, bytes, dict)) or not isinstance(values, Iterable):
        raise ValidationError(f"Expected a sequence of values for '{column}'")
    return list(values)


def is_(column: str, value: Any) -> Leaf:
    """Raw equality, no operator."""
    return when(column, None, value)


def equal(column: str, value: Any) -> Leaf:
    return when(column, "$eq", value)


def not_equal(column: str, value: Any) -> Leaf:
    return when(column, "$ne", value)


def is_in(column: str, values: Iterable[Any]) -> Leaf:
    return when(column, "$in", _as_list(column, values))


def is_not_in(column: str, values: Iterable[Any]) -> Leaf:
    return when(column, "$nin", _as_list(column, values))


def lower(column: str, value: Any) -> Leaf:
    """
    Emit ``$le`` for backwards compatibility.

    ``$le`` is not a MongoDB query operator and the server rejects it.
    Existing callers are kept working as-is; new code should use
    ``lower_than``.
    """
    warnings.warn(
        "lower() emits '$le', which MongoDB does not recognise; use lower_than()",
        DeprecationWarning,
        stacklevel=2,
    )
    return when(column, "$le", value)


def greater(column: str, value: Any) -> Leaf:
    """
    Emit ``$ge`` for backwards compatibility.

    See ``lower``; new code should use ``greater_than``.
    """
    warnings.warn(
        "greater() emits '$ge', which MongoDB does not recognise; use greater_than()",
        DeprecationWarning,
        stacklevel=2,
    )
    return when(column, "$ge", value)


def lower_than(column: str, value: Any) -> Leaf:
    return when(column, "$lt", value)


def greater_than(column: str, value: Any) -> Leaf:
    return when(column, "$gt", value)


def lower_than_equal(column: str, value: Any) -> Leaf:
    return when(column, "$lte", value)


def greater_than_equal(column: str, value: Any) -> Leaf:
    return when(column, "$gte", value)


def search(
    value: str,
    language: str | None = None,
    case_sensitive: bool | None = None,
) -> dict[str, Any]:
    """
    Build the operand of a ``$text`` clause.

    Requires a text index on the target collection.
    """
    operand: dict[str, Any] = {"$search": value}
    if language is not None:
        operand["$language"] = language
    if case_sensitive is not None:
        operand["$caseSensitive"] = case_sensitive
    return operand


def or_(groups: Iterable[FilterGroup | dict[str, Any]]) -> Or:
    """
    Combine predicates with a logical OR, preserving input order.

    Nested groups are kept as nested documents, so ``or_([a, or_([b, c])])``
    produces {"$or": [a, {"$or": [b, c]}]}.
    """
    alternatives = tuple(to_document(group) for group in groups)
    if not alternatives:
        raise ValidationError("or_() needs at least one alternative")
    return Or(alternatives)


def to_document(group: FilterGroup | dict[str, Any]) -> dict[str, Any]:
    """Serialize a filter group (or an already-built document) to a dict."""
    if isinstance(group, (Leaf, Or)):
        return group.to_document()
    if isinstance(group, dict):
        return dict(group)
    raise ValidationError(f"Unsupported filter value: {type(group).__name__}")


@dataclass
class Filter:
    """Accumulated filter state of one builder."""

    text: dict[str, Any] | None = None
    and_: list[dict[str, Any]] = field(default_factory=list)
    or_groups: list[Or] = field(default_factory=list)

    def is_empty(self) -> bool:
        return self.text is None and not self.and_ and not self.or_groups

    def set_text(self, operand: dict[str, Any]) -> None:
        self.text = operand

    def add(self, group: FilterGroup | dict[str, Any]) -> None:
        if isinstance(group, Or):
            self.or_groups.append(group)
        else:
            self.and_.append(to_document(group))

    def add_and(self, document: dict[str, Any]) -> None:
        self.and_.append(dict(document))

    def add_or(self, group: Or) -> None:
        self.or_groups.append(group)


def _clauses(flt: Filter) -> list[dict[str, Any]]:
    clauses = [dict(doc) for doc in flt.and_]
    clauses.extend(group.to_document() for group in flt.or_groups)
    return clauses


def build_filter_document(flt: Filter) -> dict[str, Any]:
    """
    Combine AND-ed predicates and OR-groups into one query document.

    Clauses are merged into a flat document when their top-level keys are
    unique. Any collision (the same field twice, or two OR-groups) switches
    to an explicit ``$and`` so no clause overwrites another.
    """
    clauses = _clauses(flt)
    if not clauses:
        return {}

    merged: dict[str, Any] = {}
    for clause in clauses:
        if any(key in merged for key in clause):
            logger.debug("[FILTER] Key collision, using explicit $and")
            return {"$and": clauses}
        merged.update(clause)
    return merged


def build_match_document(flt: Filter) -> dict[str, Any]:
    """Build the body of a $match stage, with $text first when present."""
    document: dict[str, Any] = {}
    if flt.text is not None:
        document["$text"] = dict(flt.text)
    document.update(build_filter_document(flt))
    return document


__all__ = [
    "Leaf",
    "Or",
    "FilterGroup",
    "Filter",
    "when",
    "is_",
    "equal",
    "not_equal",
    "is_in",
    "is_not_in",
    "lower",
    "greater",
    "lower_than",
    "greater_than",
    "lower_than_equal",
    "greater_than_equal",
    "search",
    "or_",
    "to_document",
    "build_filter_document",
    "build_match_document",
]
