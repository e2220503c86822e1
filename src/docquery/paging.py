"""Paged result wrapper."""

from __future__ import annotations

import math
from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class PagingResponse(BaseModel, Generic[T]):
    """
    One page of results.

    ``total_items``/``total_pages`` are only filled when the caller asked
    for a total count.
    """

    items: list[T] = Field(default_factory=list, description="Results for this page, in pipeline order")
    page: int = Field(..., description="Zero-based page index")
    size: int = Field(..., description="Requested page size")
    total_items: int | None = Field(default=None, description="Matching documents across all pages")
    total_pages: int | None = Field(default=None, description="Page count for total_items")

    @classmethod
    def build(
        cls,
        items: list[T],
        page: int,
        size: int,
        total_items: int | None = None,
    ) -> PagingResponse[T]:
        total_pages = None
        if total_items is not None:
            total_pages = math.ceil(total_items / size) if size > 0 else 0
        return cls(
            items=items,
            page=page,
            size=size,
            total_items=total_items,
            total_pages=total_pages,
        )
