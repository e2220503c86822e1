"""
Response models for the HTTP edge.
"""

from __future__ import annotations

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error response."""

    error: str
    detail: str | None = None
    code: str
