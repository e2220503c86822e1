"""
Aggregation pipeline construction.

Three layers, each usable on its own:
1. Filters  - comparison helpers and $match compilation
2. Lookups  - $lookup fragments (one, one_merge_to, many)
3. Builder  - fluent accumulator compiling everything in fixed stage order
"""

from .builder import PageWindow, QueryBuilder, query
from .filters import (
    Filter,
    FilterGroup,
    Leaf,
    Or,
    build_filter_document,
    build_match_document,
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
    not_equal,
    or_,
    search,
    when,
)
from .lookup import Lookup, many, one, one_merge_to, raw

__all__ = [
    # Builder
    "QueryBuilder",
    "PageWindow",
    "query",
    # Filters
    "Filter",
    "FilterGroup",
    "Leaf",
    "Or",
    "build_filter_document",
    "build_match_document",
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
]
