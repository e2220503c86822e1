"""
docquery - fluent aggregation queries and transactions for MongoDB.

This package provides the query layer used by feature handlers:
- Composable filter expressions compiled to $match
- Lookup fragments with single-object, merged and array shapes
- A fixed-order pipeline builder with pagination
- Typed reads (pydantic) and writes with transactional variants
- A transaction scope with fail-fast use after commit/abort

Quick Start:
    ```python
    from docquery import Settings, create_client, get_database, query, equal, one

    settings = Settings()
    client = create_client(settings)
    db = get_database(client, settings)

    members = await (
        query("member")
        .filter([equal("status", "active")])
        .lookup([one("user", "user_id", "_id", "user")])
        .sort([("created_at", -1)])
        .get_per_page(db, Member, page=0, size=20)
    )
    ```
"""

from .config.settings import Settings, get_settings
from .errors import (
    BuilderConsumedError,
    DeserializationError,
    NotFoundError,
    QueryError,
    StoreIOError,
    TransactionClosedError,
    TransactionError,
    ValidationError,
)
from .executor import (
    count,
    delete,
    delete_many,
    delete_many_with_session,
    delete_with_session,
    get_all,
    get_one,
    get_per_page,
    insert_many,
    insert_many_with_session,
    insert_one,
    insert_one_with_session,
    update,
    update_with_session,
    update_many,
    update_many_with_session,
    upsert,
    upsert_with_session,
)
from .paging import PagingResponse
from .pipeline import (
    Filter,
    FilterGroup,
    Leaf,
    Lookup,
    Or,
    QueryBuilder,
    equal,
    greater,
    greater_than,
    greater_than_equal,
    is_,
    is_in,
    is_not_in,
    lower,
    lower_than,
    lower_than_equal,
    many,
    not_equal,
    one,
    one_merge_to,
    or_,
    query,
    raw,
    search,
    when,
)
from .store import create_client, get_database, ping
from .transaction import TransactionScope, TransactionState

__version__ = "0.1.0"
__all__ = [
    # Config
    "Settings",
    "get_settings",
    "create_client",
    "get_database",
    "ping",
    # Errors
    "QueryError",
    "ValidationError",
    "NotFoundError",
    "DeserializationError",
    "StoreIOError",
    "TransactionError",
    "TransactionClosedError",
    "BuilderConsumedError",
    # Filters
    "Filter",
    "FilterGroup",
    "Leaf",
    "Or",
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
    # Lookups
    "Lookup",
    "one",
    "one_merge_to",
    "many",
    "raw",
    # Builder
    "QueryBuilder",
    "query",
    # Executor
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
    "PagingResponse",
    # Transactions
    "TransactionScope",
    "TransactionState",
]
