"""
Map docquery errors to HTTP responses in a FastAPI app.

Usage:
    ```python
    from fastapi import FastAPI
    from docquery.api import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
    ```

Handlers can then let ``NotFoundError`` and friends propagate instead of
wrapping every query call in try/except.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..errors import (
    BuilderConsumedError,
    DeserializationError,
    NotFoundError,
    QueryError,
    StoreIOError,
    TransactionClosedError,
    TransactionError,
    ValidationError,
)
from .models import ErrorResponse

logger = logging.getLogger("docquery.api")

ERROR_CODES: dict[type[QueryError], str] = {
    ValidationError: "validation_error",
    NotFoundError: "not_found",
    DeserializationError: "deserialization_error",
    StoreIOError: "store_unavailable",
    TransactionClosedError: "transaction_closed",
    TransactionError: "transaction_error",
    BuilderConsumedError: "builder_consumed",
}


def error_code_for(exc: QueryError) -> str:
    for cls in type(exc).__mro__:
        if cls in ERROR_CODES:
            return ERROR_CODES[cls]
    return "query_error"


def to_error_response(exc: QueryError) -> ErrorResponse:
    return ErrorResponse(
        error=type(exc).__name__,
        detail=str(exc),
        code=error_code_for(exc),
    )


async def query_error_handler(request: Request, exc: QueryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path}: {exc}")
    else:
        logger.info(f"[API] {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=exc.status_code,
        content=to_error_response(exc).model_dump(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the QueryError handler on ``app``."""
    app.add_exception_handler(QueryError, query_error_handler)
