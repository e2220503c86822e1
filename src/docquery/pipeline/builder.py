"""
Fluent query builder compiling to a MongoDB aggregation pipeline.

Accumulation calls (filter, lookup, sort, group_by, paginate) do no I/O and
never fail. ``build_pipeline`` compiles the state in a fixed order:

    1. $match    (only when the filter is non-empty)
    2. $lookup / $unwind / $set per lookup, in call order
    3. $sort     (keys in call order)
    4. $group
    5. $skip = page * size, then $limit = size (only when paginated)

Terminal methods run the pipeline through ``docquery.executor`` and consume
the builder; calling a second terminal method raises BuilderConsumedError.

Usage:
    ```python
    from docquery import query, equal, one

    member = await (
        query("member")
        .filter([equal("status", "active")])
        .lookup([one("user", "user_id", "_id", "user")])
        .sort([("created_at", -1)])
        .get_one(db, Member)
    )
    ```
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from ..errors import BuilderConsumedError
from .filters import (
    Filter,
    FilterGroup,
    Or,
    build_filter_document,
    build_match_document,
    search,
)
from .lookup import Lookup

if TYPE_CHECKING:
    from pymongo.asynchronous.database import AsyncDatabase

    from ..paging import PagingResponse

T = TypeVar("T")


@dataclass(frozen=True)
class PageWindow:
    """Zero-based page index and page size."""

    page: int
    size: int

    @property
    def skip(self) -> int:
        return self.page * self.size


class QueryBuilder:
    """Accumulates one query's state. Not shared across tasks."""

    def __init__(self, collection: str):
        self.collection = collection
        self._filter = Filter()
        self._lookups: list[Lookup] = []
        self._sort: list[tuple[str, int]] = []
        self._group: dict[str, Any] | None = None
        self._window: PageWindow | None = None
        self._consumed = False

    def __repr__(self) -> str:
        return f"QueryBuilder(collection={self.collection!r}, stages={len(self.build_pipeline())})"

    # ------------------------------------------------------------------
    # Accumulation
    # ------------------------------------------------------------------

    def filter(self, groups: Iterable[FilterGroup | dict[str, Any]]) -> QueryBuilder:
        """Add predicates; Leafs are AND-ed, Or groups stay nested."""
        for group in groups:
            self._filter.add(group)
        return self

    def and_(self, *documents: dict[str, Any]) -> QueryBuilder:
        for document in documents:
            self._filter.add_and(document)
        return self

    def or_(self, *groups: Or) -> QueryBuilder:
        for group in groups:
            self._filter.add_or(group)
        return self

    def text(
        self,
        value: str,
        language: str | None = None,
        case_sensitive: bool | None = None,
    ) -> QueryBuilder:
        """Set the $text clause (replaces any previous one)."""
        self._filter.set_text(search(value, language, case_sensitive))
        return self

    def lookup(self, lookups: Iterable[Lookup]) -> QueryBuilder:
        self._lookups.extend(lookups)
        return self

    def sort(self, pairs: Iterable[tuple[str, int]]) -> QueryBuilder:
        """
        Append sort keys. A key given again keeps its first position and
        takes the new direction.
        """
        for column, direction in pairs:
            for index, (existing, _) in enumerate(self._sort):
                if existing == column:
                    self._sort[index] = (column, direction)
                    break
            else:
                self._sort.append((column, direction))
        return self

    def group_by(
        self,
        key: str | dict[str, Any] | None,
        accumulators: dict[str, Any] | None = None,
    ) -> QueryBuilder:
        """
        Set the $group stage.

        Args:
            key: Field name (grouped on "$field"), a composite _id document,
                or None to group everything together
            accumulators: Output fields, e.g. {"total": {"$sum": "$amount"}}
        """
        group_id: Any = f"${key}" if isinstance(key, str) else key
        self._group = {"_id": group_id, **(accumulators or {})}
        return self

    def paginate(self, page: int, size: int) -> QueryBuilder:
        self._window = PageWindow(page=page, size=size)
        return self

    # ------------------------------------------------------------------
    # Compilation
    # ------------------------------------------------------------------

    @property
    def consumed(self) -> bool:
        return self._consumed

    @property
    def window(self) -> PageWindow | None:
        return self._window

    def build_filter(self) -> dict[str, Any]:
        """Bare filter document (no $text) for find/update/delete calls."""
        return build_filter_document(self._filter)

    def match_stages(self) -> list[dict[str, Any]]:
        if self._filter.is_empty():
            return []
        return [{"$match": build_match_document(self._filter)}]

    def count_stages(self) -> list[dict[str, Any]]:
        """
        Stages that decide how many rows come out: match, lookups and group.

        $unwind can multiply rows and $group collapses them, so a total over
        the match stage alone would not describe the paged items.
        """
        pipeline = self.match_stages()
        for lookup in self._lookups:
            pipeline.extend(lookup.stages())
        if self._group is not None:
            pipeline.append({"$group": dict(self._group)})
        return pipeline

    def build_pipeline(self) -> list[dict[str, Any]]:
        """Compile the accumulated state. Pure and repeatable."""
        pipeline = self.match_stages()

        for lookup in self._lookups:
            pipeline.extend(lookup.stages())

        if self._sort:
            pipeline.append({"$sort": dict(self._sort)})

        if self._group is not None:
            pipeline.append({"$group": dict(self._group)})

        if self._window is not None:
            pipeline.append({"$skip": self._window.skip})
            pipeline.append({"$limit": self._window.size})

        return pipeline

    compile = build_pipeline

    def consume(self) -> None:
        """Mark the builder as used by a terminal call."""
        if self._consumed:
            raise BuilderConsumedError(
                "Query builder already executed; build a new query",
                collection=self.collection,
            )
        self._consumed = True

    # ------------------------------------------------------------------
    # Terminal methods
    # ------------------------------------------------------------------

    async def get_one(self, db: AsyncDatabase, model: type[T]) -> T:
        from .. import executor

        return await executor.get_one(db, self, model)

    async def all(self, db: AsyncDatabase, model: type[T]) -> list[T]:
        from .. import executor

        return await executor.get_all(db, self, model)

    async def get_per_page(
        self,
        db: AsyncDatabase,
        model: type[T],
        page: int,
        size: int,
        with_total: bool = False,
    ) -> PagingResponse[T]:
        from .. import executor

        return await executor.get_per_page(db, self, model, page, size, with_total=with_total)

    async def count(self, db: AsyncDatabase) -> int:
        from .. import executor

        return await executor.count(db, self)


def query(collection: str) -> QueryBuilder:
    """Start a query against ``collection``."""
    return QueryBuilder(collection)


__all__ = ["QueryBuilder", "PageWindow", "query"]
