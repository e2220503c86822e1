"""
Pipeline execution and write operations.

Reads compile a ``QueryBuilder`` into an aggregation pipeline, run it and
deserialize each document with pydantic ``TypeAdapter(model)``. ``model``
may be a pydantic model, a dataclass, a TypedDict or plain ``dict``.

Writes come in pairs: ``insert_one`` runs as an independent operation,
``insert_one_with_session`` runs inside a ``TransactionScope`` and aborts
the scope before re-raising when the write fails for any reason.

Error mapping:
    pymongo PyMongoError        -> StoreIOError
    bson InvalidDocument        -> ValidationError
    other bson BSONError        -> StoreIOError
    pydantic ValidationError    -> DeserializationError
    zero rows in get_one        -> NotFoundError
    empty collection / filter   -> ValidationError
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from functools import lru_cache
from typing import TYPE_CHECKING, Any, TypeVar, Union

from bson.errors import BSONError, InvalidDocument
from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import PyMongoError

from .errors import (
    DeserializationError,
    NotFoundError,
    QueryError,
    StoreIOError,
    TransactionError,
    ValidationError,
)
from .paging import PagingResponse
from .pipeline.builder import QueryBuilder
from .pipeline.filters import Filter, FilterGroup, build_filter_document

if TYPE_CHECKING:
    from pymongo.asynchronous.collection import AsyncCollection
    from pymongo.asynchronous.database import AsyncDatabase

    from .transaction import TransactionScope

logger = logging.getLogger("docquery.executor")

T = TypeVar("T")

COUNT_FIELD = "total_items"

WriteFilter = Union[QueryBuilder, Iterable[Union[FilterGroup, dict[str, Any]]]]


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------


@lru_cache(maxsize=256)
def _adapter(model: Any) -> TypeAdapter[Any]:
    return TypeAdapter(model)


def deserialize(document: Mapping[str, Any], model: type[T], collection: str | None = None) -> T:
    """Convert one raw document into ``model``."""
    try:
        return _adapter(model).validate_python(document)
    except PydanticValidationError as e:
        logger.error(f"[DB:decode] {collection}: {e.error_count()} error(s) for {model!r}")
        raise DeserializationError(
            f"Document does not match {getattr(model, '__name__', model)!r}: {e}",
            collection=collection,
        ) from e


def _collection(db: AsyncDatabase, name: str) -> AsyncCollection:
    if not name or not name.strip():
        raise ValidationError("Specify collection name before running a query")
    return db[name]


async def aggregate(db: AsyncDatabase, collection: str, pipeline: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Run a pipeline and return the raw documents."""
    coll = _collection(db, collection)
    logger.debug(f"[DB:aggregate] {collection}: {pipeline}")
    try:
        cursor = await coll.aggregate(pipeline)
        return await cursor.to_list(length=None)
    except (PyMongoError, BSONError) as e:
        logger.error(f"[DB:aggregate] {collection} failed: {e}")
        raise StoreIOError(f"Aggregation failed: {e}", collection=collection) from e


def _write_error(action: str, collection: str, error: Exception) -> QueryError:
    """Translate a driver or encoder failure into a typed error."""
    if isinstance(error, InvalidDocument):
        logger.info(f"[DB:{action.lower()}] {collection} rejected payload: {error}")
        return ValidationError(f"{action} rejected, document cannot be encoded: {error}", collection=collection)
    logger.error(f"[DB:{action.lower()}] {collection} failed: {error}")
    return StoreIOError(f"{action} failed: {error}", collection=collection)


def _to_document(data: Any, collection: str) -> dict[str, Any]:
    if isinstance(data, BaseModel):
        return data.model_dump(by_alias=True, exclude_none=True)
    if isinstance(data, Mapping):
        return dict(data)
    raise ValidationError(
        f"Cannot store value of type {type(data).__name__}; pass a dict or a pydantic model",
        collection=collection,
    )


def _write_filter(filters: WriteFilter, collection: str) -> dict[str, Any]:
    if isinstance(filters, QueryBuilder):
        document = filters.build_filter()
    else:
        flt = Filter()
        for group in filters:
            flt.add(group)
        document = build_filter_document(flt)
    if not document:
        raise ValidationError("Specify filter before writing", collection=collection)
    return document


def _update_document(
    fields: Mapping[str, Any] | BaseModel | None,
    inc: Mapping[str, Any] | None,
    collection: str,
) -> dict[str, Any]:
    update: dict[str, Any] = {}
    if fields is not None:
        set_fields = _to_document(fields, collection)
        if set_fields:
            update["$set"] = set_fields
    if inc:
        update["$inc"] = dict(inc)
    if not update:
        raise ValidationError("Nothing to update", collection=collection)
    return update


async def _abort(scope: TransactionScope, collection: str, error: Exception) -> None:
    logger.info(f"[DB:write] {collection} failed inside transaction, aborting: {error!r}")
    if not scope.is_active:
        return
    try:
        await scope.abort()
    except TransactionError as abort_error:
        # The write failure is what the caller sees; the scope is closed either way.
        logger.warning(f"[DB:write] Abort after failed write also failed: {abort_error}")


async def _in_scope(
    scope: TransactionScope,
    collection: str,
    write: Callable[[Any], Awaitable[T]],
) -> T:
    """Run ``write(session)``; on any failure abort the scope, then re-raise."""
    session = scope.session
    try:
        return await write(session)
    except Exception as e:
        await _abort(scope, collection, e)
        raise


# ----------------------------------------------------------------------
# Reads
# ----------------------------------------------------------------------


async def get_one(db: AsyncDatabase, builder: QueryBuilder, model: type[T]) -> T:
    """
    Return the first document of the compiled pipeline.

    Raises:
        NotFoundError: If the pipeline yields nothing
    """
    builder.consume()
    pipeline = builder.build_pipeline()
    pipeline.append({"$limit": 1})

    documents = await aggregate(db, builder.collection, pipeline)
    if not documents:
        logger.debug(f"[DB:get] {builder.collection}: no document found")
        raise NotFoundError("Document not found", collection=builder.collection)
    return deserialize(documents[0], model, builder.collection)


async def get_all(db: AsyncDatabase, builder: QueryBuilder, model: type[T]) -> list[T]:
    """Return every document of the compiled pipeline, in order."""
    builder.consume()
    documents = await aggregate(db, builder.collection, builder.build_pipeline())
    logger.debug(f"[DB:get] {builder.collection}: {len(documents)} document(s)")
    return [deserialize(doc, model, builder.collection) for doc in documents]


async def count(db: AsyncDatabase, builder: QueryBuilder) -> int:
    """Count the rows ``all()`` would return (sort and paging ignored)."""
    builder.consume()
    return await _count_rows(db, builder)


async def _count_rows(db: AsyncDatabase, builder: QueryBuilder) -> int:
    pipeline = builder.count_stages()
    pipeline.append({"$count": COUNT_FIELD})
    documents = await aggregate(db, builder.collection, pipeline)
    if not documents:
        return 0
    return int(documents[0].get(COUNT_FIELD, 0))


async def get_per_page(
    db: AsyncDatabase,
    builder: QueryBuilder,
    model: type[T],
    page: int,
    size: int,
    with_total: bool = False,
) -> PagingResponse[T]:
    """
    Return one page of results.

    Args:
        page: Zero-based page index
        size: Page size
        with_total: Also count every row the unpaged pipeline yields
    """
    builder.consume()
    builder.paginate(page, size)

    documents = await aggregate(db, builder.collection, builder.build_pipeline())
    items = [deserialize(doc, model, builder.collection) for doc in documents]

    total_items = await _count_rows(db, builder) if with_total else None
    logger.debug(f"[DB:page] {builder.collection}: page={page} size={size} items={len(items)}")
    return PagingResponse.build(items, page=page, size=size, total_items=total_items)


# ----------------------------------------------------------------------
# Writes
# ----------------------------------------------------------------------


async def _insert_one(
    db: AsyncDatabase,
    collection: str,
    data: Any,
    session: Any = None,
) -> Any:
    coll = _collection(db, collection)
    document = _to_document(data, collection)
    try:
        result = await coll.insert_one(document, session=session)
    except (PyMongoError, BSONError) as e:
        raise _write_error("Insert", collection, e) from e
    return result.inserted_id


async def insert_one(db: AsyncDatabase, collection: str, data: Any) -> Any:
    """Insert one document; returns its ``_id``."""
    return await _insert_one(db, collection, data)


async def insert_one_with_session(
    db: AsyncDatabase,
    collection: str,
    data: Any,
    scope: TransactionScope,
) -> Any:
    return await _in_scope(
        scope,
        collection,
        lambda session: _insert_one(db, collection, data, session=session),
    )


async def _insert_many(
    db: AsyncDatabase,
    collection: str,
    data: Iterable[Any],
    session: Any = None,
) -> list[Any]:
    coll = _collection(db, collection)
    documents = [_to_document(item, collection) for item in data]
    if not documents:
        return []
    try:
        result = await coll.insert_many(documents, session=session)
    except (PyMongoError, BSONError) as e:
        raise _write_error("Insert", collection, e) from e
    return list(result.inserted_ids)


async def insert_many(db: AsyncDatabase, collection: str, data: Iterable[Any]) -> list[Any]:
    return await _insert_many(db, collection, data)


async def insert_many_with_session(
    db: AsyncDatabase,
    collection: str,
    data: Iterable[Any],
    scope: TransactionScope,
) -> list[Any]:
    return await _in_scope(
        scope,
        collection,
        lambda session: _insert_many(db, collection, data, session=session),
    )


async def _update(
    db: AsyncDatabase,
    collection: str,
    filters: WriteFilter,
    fields: Mapping[str, Any] | BaseModel | None,
    inc: Mapping[str, Any] | None,
    upsert: bool = False,
    many: bool = False,
    session: Any = None,
) -> int:
    coll = _collection(db, collection)
    query = _write_filter(filters, collection)
    update = _update_document(fields, inc, collection)
    try:
        if many:
            result = await coll.update_many(query, update, upsert=upsert, session=session)
        else:
            result = await coll.update_one(query, update, upsert=upsert, session=session)
    except (PyMongoError, BSONError) as e:
        raise _write_error("Update", collection, e) from e
    if upsert and result.upserted_id is not None:
        return 1
    return result.modified_count


async def update(
    db: AsyncDatabase,
    collection: str,
    filters: WriteFilter,
    fields: Mapping[str, Any] | BaseModel | None,
    inc: Mapping[str, Any] | None = None,
) -> int:
    """
    Update the first matching document.

    Args:
        filters: Filter groups (or a builder whose filter is reused)
        fields: Values for $set
        inc: Values for $inc

    Returns:
        Number of modified documents
    """
    return await _update(db, collection, filters, fields, inc)


async def update_with_session(
    db: AsyncDatabase,
    collection: str,
    filters: WriteFilter,
    fields: Mapping[str, Any] | BaseModel | None,
    scope: TransactionScope,
    inc: Mapping[str, Any] | None = None,
) -> int:
    return await _in_scope(
        scope,
        collection,
        lambda session: _update(db, collection, filters, fields, inc, session=session),
    )


async def update_many(
    db: AsyncDatabase,
    collection: str,
    filters: WriteFilter,
    fields: Mapping[str, Any] | BaseModel | None,
    inc: Mapping[str, Any] | None = None,
) -> int:
    """Apply the same $set/$inc to every matching document; returns the modified count."""
    return await _update(db, collection, filters, fields, inc, many=True)


async def update_many_with_session(
    db: AsyncDatabase,
    collection: str,
    filters: WriteFilter,
    fields: Mapping[str, Any] | BaseModel | None,
    scope: TransactionScope,
    inc: Mapping[str, Any] | None = None,
) -> int:
    return await _in_scope(
        scope,
        collection,
        lambda session: _update(db, collection, filters, fields, inc, many=True, session=session),
    )


async def upsert(
    db: AsyncDatabase,
    collection: str,
    filters: WriteFilter,
    fields: Mapping[str, Any] | BaseModel | None,
    inc: Mapping[str, Any] | None = None,
) -> int:
    """Update the first match or insert a new document; returns 1 when a write happened."""
    return await _update(db, collection, filters, fields, inc, upsert=True)


async def upsert_with_session(
    db: AsyncDatabase,
    collection: str,
    filters: WriteFilter,
    fields: Mapping[str, Any] | BaseModel | None,
    scope: TransactionScope,
    inc: Mapping[str, Any] | None = None,
) -> int:
    return await _in_scope(
        scope,
        collection,
        lambda session: _update(db, collection, filters, fields, inc, upsert=True, session=session),
    )


async def _delete(
    db: AsyncDatabase,
    collection: str,
    filters: WriteFilter,
    many: bool,
    session: Any = None,
) -> int:
    coll = _collection(db, collection)
    query = _write_filter(filters, collection)
    try:
        if many:
            result = await coll.delete_many(query, session=session)
        else:
            result = await coll.delete_one(query, session=session)
    except (PyMongoError, BSONError) as e:
        raise _write_error("Delete", collection, e) from e
    return result.deleted_count


async def delete(db: AsyncDatabase, collection: str, filters: WriteFilter) -> int:
    """Delete the first matching document; returns the deleted count."""
    return await _delete(db, collection, filters, many=False)


async def delete_with_session(
    db: AsyncDatabase,
    collection: str,
    filters: WriteFilter,
    scope: TransactionScope,
) -> int:
    return await _in_scope(
        scope,
        collection,
        lambda session: _delete(db, collection, filters, many=False, session=session),
    )


async def delete_many(db: AsyncDatabase, collection: str, filters: WriteFilter) -> int:
    return await _delete(db, collection, filters, many=True)


async def delete_many_with_session(
    db: AsyncDatabase,
    collection: str,
    filters: WriteFilter,
    scope: TransactionScope,
) -> int:
    return await _in_scope(
        scope,
        collection,
        lambda session: _delete(db, collection, filters, many=True, session=session),
    )


__all__ = [
    "aggregate",
    "deserialize",
    "get_one",
    "get_all",
    "get_per_page",
    "count",
    "insert_one",
    "insert_one_with_session",
    "insert_many",
    "insert_many_with_session",
    "update",
    "update_with_session",
    "update_many",
    "update_many_with_session",
    "upsert",
    "upsert_with_session",
    "delete",
    "delete_with_session",
    "delete_many",
    "delete_many_with_session",
]
