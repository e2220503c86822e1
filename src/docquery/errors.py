"""
Typed errors for the docquery layer.

Builder accumulation never fails. Only the terminal executor calls and the
transaction scope raise, and they always raise a subclass of ``QueryError``
so callers can map each kind to a response category:

    NotFoundError         -> 404
    ValidationError       -> 400
    StoreIOError          -> 503
    DeserializationError  -> 500
    TransactionError      -> 500
"""

from __future__ import annotations


class QueryError(Exception):
    """Base class for all docquery errors."""

    status_code: int = 500

    def __init__(self, message: str, *, collection: str | None = None):
        super().__init__(message)
        self.message = message
        self.collection = collection

    def __str__(self) -> str:
        if self.collection:
            return f"{self.message} (collection={self.collection})"
        return self.message


class ValidationError(QueryError):
    """Malformed input to a helper or a write (empty field name, empty filter...)."""

    status_code = 400


class NotFoundError(QueryError):
    """Zero results where exactly one was expected."""

    status_code = 404


class DeserializationError(QueryError):
    """Pipeline output does not match the requested shape."""

    status_code = 500


class StoreIOError(QueryError):
    """Connection, timeout or protocol failure reported by the store."""

    status_code = 503


class TransactionError(QueryError):
    """Begin/commit/abort failure, or misuse of a transaction scope."""

    status_code = 500


class TransactionClosedError(TransactionError):
    """The scope was already committed or aborted."""


class BuilderConsumedError(QueryError):
    """A terminal method was called twice on the same builder."""

    status_code = 500


__all__ = [
    "QueryError",
    "ValidationError",
    "NotFoundError",
    "DeserializationError",
    "StoreIOError",
    "TransactionError",
    "TransactionClosedError",
    "BuilderConsumedError",
]
