"""
FastAPI integration for docquery.

Exposes exception handlers mapping query errors to HTTP status codes.
"""

from .errors import error_code_for, register_exception_handlers, to_error_response
from .models import ErrorResponse

__all__ = [
    "ErrorResponse",
    "error_code_for",
    "register_exception_handlers",
    "to_error_response",
]
