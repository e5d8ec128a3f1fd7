"""Helpers for validating and classifying spans."""

import logging
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from ..schema import Span

logger = logging.getLogger(__name__)


def coerce_span(candidate: Any) -> Span | None:
    """Returns a usable Span, or None for malformed input.

    Accepts Span instances and plain mappings (e.g. decoded JSON). Anything
    that fails validation is dropped rather than raised.
    """
    if isinstance(candidate, Span):
        return candidate
    if isinstance(candidate, dict):
        try:
            return Span.model_validate(candidate)
        except ValidationError as e:
            logger.debug(f"Skipping malformed span {candidate.get('span_id')}: {e}")
            return None
    logger.debug(f"Skipping non-span input of type {type(candidate).__name__}")
    return None


def usable_spans(spans: Iterable[Any] | None) -> list[Span]:
    """Filters a snapshot down to well-formed spans, preserving order."""
    if not spans:
        return []
    result = []
    for candidate in spans:
        span = coerce_span(candidate)
        if span is not None:
            result.append(span)
    return result


def is_successful(span: Span) -> bool:
    """Success predicate shared by hotspot detection and aggregate metrics.

    A span without status falls back to its ``success`` attribute
    (absent or textually true means success). Otherwise a status starting
    with "2" or equal to "0" is a success.
    """
    status = span.status
    if not status:
        success = span.attributes.get("success")
        return success is None or str(success).lower() == "true"
    return status.startswith("2") or status == "0"
