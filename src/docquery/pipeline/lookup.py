"""
Join-like pipeline fragments built on $lookup.

Three shapes are supported:

    one           $lookup + $unwind (preserveNullAndEmptyArrays)
                  alias is a single optional object, never an array
    one_merge_to  $lookup + $set
                  joined object is merged into an existing parent object
    many          $lookup only
                  alias stays an array (one-to-many)

Example (one):
    [
        {"$lookup": {"from": "roles", "localField": "role_id",
                     "foreignField": "_id", "as": "role"}},
        {"$unwind": {"path": "$role", "preserveNullAndEmptyArrays": True}},
    ]
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any

from ..errors import ValidationError


@dataclass(frozen=True)
class Lookup:
    """A $lookup stage with its optional $unwind and $set follow-ups."""

    lookup: dict[str, Any]
    unwind: dict[str, Any] | None = None
    set: dict[str, Any] | None = None

    def stages(self) -> Iterator[dict[str, Any]]:
        """Yield pipeline stages in fixed order: $lookup, $unwind, $set."""
        yield self.lookup
        if self.unwind is not None:
            yield self.unwind
        if self.set is not None:
            yield self.set


def _check_names(**names: str) -> None:
    for label, value in names.items():
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Lookup '{label}' must be a non-empty string")


def create_lookup_doc(collection: str, local: str, foreign: str, alias: str) -> dict[str, Any]:
    """Body of a $lookup stage."""
    _check_names(collection=collection, local=local, foreign=foreign, alias=alias)
    return {
        "from": collection,
        "localField": local,
        "foreignField": foreign,
        "as": alias,
    }


def raw(stage: dict[str, Any]) -> Lookup:
    """Wrap a caller-built $lookup stage (e.g. pipeline form) unchanged."""
    if "$lookup" not in stage:
        raise ValidationError("raw() expects a document with a '$lookup' key")
    return Lookup(lookup=stage)


def one(collection: str, local: str, foreign: str, alias: str) -> Lookup:
    """
    Left outer join to at most one document.

    Unwinding with preserveNullAndEmptyArrays keeps the parent document when
    nothing matches; the alias field is then absent.
    """
    return Lookup(
        lookup={"$lookup": create_lookup_doc(collection, local, foreign, alias)},
        unwind={
            "$unwind": {
                "path": f"${alias}",
                "preserveNullAndEmptyArrays": True,
            }
        },
    )


def merge_field_name(parent: str, alias: str) -> str:
    """Temporary array field holding the raw join result for one_merge_to."""
    return f"_{parent}_{alias}".replace(".", "_")


def one_merge_to(
    collection: str,
    local: str,
    foreign: str,
    alias: str,
    parent: str,
) -> Lookup:
    """
    Join one document and merge it into ``parent`` under ``alias``.

    Outcomes:
        parent absent or null        -> parent stays absent
        parent present, no match     -> parent kept, any existing ``alias`` key removed
        parent present, one match    -> parent.alias = joined document
        parent present, many matches -> parent.alias = first joined document

    The temporary join field is dropped in the same $set stage. Clearing a
    stale alias uses $unsetField (MongoDB 5.0+).
    """
    _check_names(parent=parent)
    temp = merge_field_name(parent, alias)
    f_temp = f"${temp}"
    f_parent = f"${parent}"

    set_stage = {
        "$set": {
            parent: {
                "$cond": {
                    "if": {"$ifNull": [f_parent, False]},
                    "then": {
                        "$cond": {
                            "if": {"$gt": [{"$size": f_temp}, 0]},
                            "then": {
                                "$mergeObjects": [
                                    f_parent,
                                    {alias: {"$arrayElemAt": [f_temp, 0]}},
                                ]
                            },
                            "else": {"$unsetField": {"field": alias, "input": f_parent}},
                        }
                    },
                    "else": "$$REMOVE",
                }
            },
            temp: "$$REMOVE",
        }
    }
    return Lookup(
        lookup={"$lookup": create_lookup_doc(collection, local, foreign, temp)},
        set=set_stage,
    )


def many(collection: str, local: str, foreign: str, alias: str) -> Lookup:
    """One-to-many join; ``alias`` is always an array (possibly empty)."""
    return Lookup(lookup={"$lookup": create_lookup_doc(collection, local, foreign, alias)})


__all__ = [
    "Lookup",
    "create_lookup_doc",
    "raw",
    "one",
    "one_merge_to",
    "many",
    "merge_field_name",
]
