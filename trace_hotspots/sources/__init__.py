"""Span source backends."""

from .base import SpanQuery, SpanSource, matches_package, matches_query
from .factory import BACKENDS, create_span_source
from .json_file import JsonFileSpanSource
from .memory import InMemorySpanSource

__all__ = [
    "BACKENDS",
    "InMemorySpanSource",
    "JsonFileSpanSource",
    "SpanQuery",
    "SpanSource",
    "create_span_source",
    "matches_package",
    "matches_query",
]
