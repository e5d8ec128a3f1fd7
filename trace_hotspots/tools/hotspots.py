"""Hotspot detection and call-chain utilities for span snapshots."""

import logging
from collections import defaultdict
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any

from ..decorators import instrumented
from ..schema import Hotspot, Severity, Span
from ..telemetry import get_meter
from .normalizer import normalize_operation_name
from .operations import build_detailed_operation
from .recommendations import HotspotContext, generate_recommendations
from .spans import is_successful, usable_spans
from .statistics import aggregate_durations

logger = logging.getLogger(__name__)

meter = get_meter(__name__)
hotspots_detected = meter.create_counter(
    name="trace_hotspots.analysis.hotspots_detected",
    description="Count of hotspots produced by detection passes",
    unit="1",
)

DEFAULT_MIN_SAMPLES = 2
MAX_RELATED_OPERATIONS = 5

SEVERITY_WEIGHTS: dict[Severity, int] = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
}

# (tier, predicate over avg/max duration and error rate), first match wins
SEVERITY_RULES: tuple[tuple[Severity, Callable[[float, float, float], bool]], ...] = (
    (
        Severity.HIGH,
        lambda avg, peak, error_rate: error_rate > 0.10 or avg > 5000 or peak > 10000,
    ),
    (
        Severity.MEDIUM,
        lambda avg, peak, error_rate: error_rate > 0.05 or avg > 2000 or peak > 5000,
    ),
)


def determine_severity(avg_duration_ms: float, max_duration_ms: float, error_rate: float) -> Severity:
    """Severity tier of a group of spans."""
    for severity, matches in SEVERITY_RULES:
        if matches(avg_duration_ms, max_duration_ms, error_rate):
            return severity
    return Severity.LOW


def severity_weight(severity: Severity | str | None) -> int:
    """Ranking weight of a severity; unknown values weigh 0."""
    try:
        return SEVERITY_WEIGHTS.get(Severity(severity), 0)
    except ValueError:
        return 0


def _group_by_operation(spans: list[Span]) -> dict[str, list[Span]]:
    groups: dict[str, list[Span]] = defaultdict(list)
    for span in spans:
        groups[normalize_operation_name(span.operation_name)].append(span)
    return groups


def find_related_operations(operation: str, spans: Sequence[Span]) -> list[str]:
    """Other operations that share a trace with ``operation``.

    Distinct, in first-seen order, capped at five.
    """
    trace_ids = {
        s.trace_id
        for s in spans
        if s.trace_id and normalize_operation_name(s.operation_name) == operation
    }
    related: list[str] = []
    for span in spans:
        if span.trace_id not in trace_ids:
            continue
        other = normalize_operation_name(span.operation_name)
        if other != operation and other not in related:
            related.append(other)
            if len(related) >= MAX_RELATED_OPERATIONS:
                break
    return related


def _build_hotspot(operation: str, group: list[Span], all_spans: list[Span]) -> Hotspot:
    stats = aggregate_durations(s.duration_ms for s in group)
    errors = sum(1 for s in group if not is_successful(s))
    error_rate = errors / len(group)

    ctx = HotspotContext.for_operation(operation, stats.avg, stats.max, error_rate)

    return Hotspot(
        operation=build_detailed_operation(operation, ctx.method_info),
        normalized_operation=operation,
        avg_duration_ms=stats.avg,
        max_duration_ms=stats.max,
        occurrence_count=len(group),
        error_rate=error_rate,
        severity=determine_severity(stats.avg, stats.max, error_rate),
        related_operations=find_related_operations(operation, all_spans),
        recommendations=generate_recommendations(ctx),
    )


@instrumented
def detect_hotspots(
    spans: Sequence[Any], min_samples: int = DEFAULT_MIN_SAMPLES
) -> list[Hotspot]:
    """Groups spans by normalized operation and ranks the groups.

    Args:
        spans: Snapshot of spans. Malformed entries are ignored; the input
            is never modified.
        min_samples: Groups with fewer spans are discarded.

    Returns:
        Hotspots ordered by severity weight, then by average duration,
        both descending.
    """
    valid = usable_spans(spans)
    hotspots: list[Hotspot] = []

    for operation, group in _group_by_operation(valid).items():
        if len(group) < min_samples:
            continue
        try:
            hotspots.append(_build_hotspot(operation, group, valid))
        except (ValueError, TypeError) as e:
            logger.warning(f"Skipping hotspot group '{operation}': {e}")

    hotspots.sort(
        key=lambda h: (severity_weight(h.severity), h.avg_duration_ms), reverse=True
    )

    if hotspots:
        hotspots_detected.add(len(hotspots))
    logger.info(
        f"Detected {len(hotspots)} hotspots from {len(valid)} spans "
        f"({len(spans) - len(valid) if spans else 0} skipped)"
    )
    return hotspots


def find_slowest_spans(spans: Sequence[Any], limit: int = 10) -> list[Span]:
    """The ``limit`` slowest individual spans."""
    return sorted(usable_spans(spans), key=lambda s: s.duration_ms, reverse=True)[:limit]


_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def _timestamp_key(span: Span) -> datetime:
    ts = span.timestamp
    if ts is None:
        return _EPOCH
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def sort_call_chain(chain: Sequence[Span]) -> list[Span]:
    """Orders the spans of one trace parent-before-child.

    Walks depth-first from the root, visiting children by start time. A
    chain without a root is ordered by start time only; spans unreachable
    from the root follow the tree in start-time order.
    """
    children: dict[str, list[Span]] = defaultdict(list)
    root: Span | None = None
    for span in chain:
        if span.is_root:
            root = span
        else:
            children[span.parent_span_id].append(span)

    if root is None:
        return sorted(chain, key=_timestamp_key)

    ordered: list[Span] = []
    stack = [root]
    visited: set[int] = set()
    while stack:
        span = stack.pop()
        if id(span) in visited:
            continue
        visited.add(id(span))
        ordered.append(span)
        kids = sorted(children.get(span.span_id or "", []), key=_timestamp_key)
        stack.extend(reversed(kids))

    # Orphans and extra roots keep their start-time order after the tree
    leftovers = [s for s in chain if id(s) not in visited]
    ordered.extend(sorted(leftovers, key=_timestamp_key))
    return ordered


def find_call_chains(spans: Sequence[Any]) -> dict[str, list[Span]]:
    """Groups spans by trace ID, each chain ordered parent-before-child."""
    by_trace: dict[str, list[Span]] = defaultdict(list)
    for span in usable_spans(spans):
        if span.trace_id:
            by_trace[span.trace_id].append(span)
    return {trace_id: sort_call_chain(chain) for trace_id, chain in by_trace.items()}


def calculate_time_breakdown(chain: Sequence[Any]) -> dict[str, float]:
    """Total duration per normalized operation within a chain."""
    breakdown: dict[str, float] = defaultdict(float)
    for span in usable_spans(chain):
        breakdown[normalize_operation_name(span.operation_name)] += span.duration_ms
    return dict(breakdown)


def find_critical_path(chain: Sequence[Any]) -> list[str]:
    """Operations of a chain in call order, with their durations."""
    return [
        f"{span.operation_name} ({span.duration_ms:.2f}ms)"
        for span in sort_call_chain(usable_spans(chain))
    ]
