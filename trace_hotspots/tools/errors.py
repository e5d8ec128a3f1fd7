"""Error breakdowns over failed spans.

Failed spans (see ``is_successful``) are grouped per normalized method and
per class. Error types come from the span status (``"HTTP 500"``) and from
error attributes:
- ``error`` set to true, with an optional ``error_message``
- ``exception.type`` / ``exception.message`` (OpenTelemetry conventions)
- ``/error/message`` (Cloud Trace label)
"""

import logging
from collections import Counter, defaultdict
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from ..decorators import instrumented
from ..schema import ErrorClassStatistics, ErrorMethodInfo, Span
from .normalizer import normalize_operation_name
from .operations import extract_method_info
from .spans import is_successful, usable_spans

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"
ERROR_FLAG_TYPE = "Custom Error (error=true)"
MAX_SAMPLE_MESSAGES = 5


def _error_details(span: Span) -> tuple[list[str], list[str]]:
    """Error types and messages carried by one failed span."""
    attributes = span.attributes
    types: list[str] = []
    messages: list[str] = []

    if str(attributes.get("error", "")).lower() == "true":
        types.append(ERROR_FLAG_TYPE)
        if attributes.get("error_message"):
            messages.append(f"Custom Error: {attributes['error_message']}")

    exception_type = attributes.get("exception.type")
    exception_message = attributes.get("exception.message") or attributes.get(
        "/error/message"
    )
    if exception_type:
        types.append(str(exception_type))
    if exception_message:
        if exception_type:
            messages.append(f"{exception_type}: {exception_message}")
        else:
            messages.append(str(exception_message))

    if span.status:
        types.append(f"HTTP {span.status}")

    return types, messages


def _failed_spans(spans: Sequence[Any]) -> list[Span]:
    return [s for s in usable_spans(spans) if not is_successful(s)]


def _method_key(span: Span) -> str:
    return normalize_operation_name(span.operation_name) or UNKNOWN


def _as_utc(ts: datetime) -> datetime:
    return ts.replace(tzinfo=timezone.utc) if ts.tzinfo is None else ts


def _average_duration(spans: list[Span]) -> float:
    return sum(s.duration_ms for s in spans) / len(spans)


@instrumented
def analyze_error_methods(spans: Sequence[Any]) -> dict[str, ErrorMethodInfo]:
    """Groups failed spans by normalized method.

    Args:
        spans: Snapshot of spans; successful and malformed spans are ignored.

    Returns:
        ErrorMethodInfo keyed by normalized method, most errors first.
    """
    by_method: dict[str, list[Span]] = defaultdict(list)
    for span in _failed_spans(spans):
        by_method[_method_key(span)].append(span)

    result: dict[str, ErrorMethodInfo] = {}
    for method, failures in sorted(by_method.items(), key=lambda kv: (-len(kv[1]), kv[0])):
        error_types: Counter[str] = Counter()
        messages: list[str] = []
        for span in failures:
            types, span_messages = _error_details(span)
            error_types.update(types)
            messages.extend(span_messages)

        timestamps = [_as_utc(s.timestamp) for s in failures if s.timestamp is not None]
        result[method] = ErrorMethodInfo(
            method_name=method,
            error_count=len(failures),
            error_types=dict(error_types),
            sample_messages=list(dict.fromkeys(messages))[:MAX_SAMPLE_MESSAGES],
            avg_duration_ms=_average_duration(failures),
            last_error_time=max(timestamps) if timestamps else None,
        )

    logger.debug(f"Found errors in {len(result)} methods")
    return result


@instrumented
def error_statistics_by_class(spans: Sequence[Any]) -> dict[str, ErrorClassStatistics]:
    """Aggregates failed spans per class.

    HTTP endpoints are grouped under class ``HTTP``; identifiers that do not
    parse as code paths under ``Unknown``.
    """
    by_class: dict[str, list[Span]] = defaultdict(list)
    packages: dict[str, str | None] = {}
    for span in _failed_spans(spans):
        info = extract_method_info(_method_key(span))
        class_name = info.full_class_name or info.class_name or UNKNOWN
        by_class[class_name].append(span)
        packages.setdefault(class_name, info.package_name)

    result: dict[str, ErrorClassStatistics] = {}
    for class_name, failures in sorted(by_class.items(), key=lambda kv: (-len(kv[1]), kv[0])):
        error_types: Counter[str] = Counter()
        for span in failures:
            error_types.update(_error_details(span)[0])

        result[class_name] = ErrorClassStatistics(
            class_name=class_name,
            package_name=packages[class_name],
            total_errors=len(failures),
            unique_methods_with_errors=len({_method_key(s) for s in failures}),
            error_types=dict(error_types),
            avg_duration_ms=_average_duration(failures),
        )

    logger.debug(f"Found errors in {len(result)} classes")
    return result
