"""SLA violation evaluation.

Two evaluation modes are supported:

- Aggregate mode checks the overall average, the target percentile and
  the overall error rate of a snapshot.
- Hotspot mode checks every hotspot's average duration and error rate,
  and re-grades each hotspot's severity against the policy. For alerting
  purposes this grading replaces the one computed during detection.

All comparisons are strict (a value equal to its threshold passes) and a
threshold missing from the policy disables its check.
"""

import logging
from collections.abc import Sequence

from ..decorators import instrumented
from ..schema import (
    AggregateMetrics,
    EvaluationMode,
    Hotspot,
    Severity,
    SLAPolicy,
    Violation,
    ViolationType,
)
from ..telemetry import get_meter

logger = logging.getLogger(__name__)

meter = get_meter(__name__)
violations_raised = meter.create_counter(
    name="trace_hotspots.sla.violations",
    description="Count of SLA violations raised",
    unit="1",
)

DEFAULT_PERCENTILE = 95


def _require_policy(policy: SLAPolicy | None) -> SLAPolicy:
    if policy is None:
        raise ValueError("An SLA policy is required for evaluation")
    return policy


def _rate_checks_enabled(sample_size: int, policy: SLAPolicy) -> bool:
    return sample_size > (policy.min_sample_size or 0)


def _record(violations: list[Violation], mode: str) -> list[Violation]:
    for violation in violations:
        violations_raised.add(
            1,
            {
                "mode": mode,
                "type": violation.type.value,
                "severity": violation.severity.value,
            },
        )
    return violations


@instrumented
def evaluate_aggregate(metrics: AggregateMetrics, policy: SLAPolicy) -> list[Violation]:
    """Checks snapshot-wide metrics against the policy.

    Args:
        metrics: Aggregate metrics of the snapshot.
        policy: Thresholds to check against.

    Returns:
        Violations in check order: response time, percentile, error rate.

    Raises:
        ValueError: If no policy is given.
    """
    policy = _require_policy(policy)
    violations: list[Violation] = []
    stats = metrics.statistics

    if policy.critical_duration_ms is not None and stats.avg > policy.critical_duration_ms:
        violations.append(
            Violation(
                type=ViolationType.RESPONSE_TIME,
                severity=Severity.CRITICAL,
                actual_value=stats.avg,
                threshold=policy.critical_duration_ms,
                message=(
                    f"Avg response time {stats.avg:.2f}ms exceeds "
                    f"{policy.critical_duration_ms:.2f}ms"
                ),
            )
        )

    percentile = policy.percentile or DEFAULT_PERCENTILE
    percentile_value = stats.percentile(percentile)
    if (
        policy.percentile_threshold_ms is not None
        and percentile_value is not None
        and percentile_value > policy.percentile_threshold_ms
    ):
        violations.append(
            Violation(
                type=ViolationType.PERCENTILE,
                severity=Severity.HIGH,
                actual_value=percentile_value,
                threshold=policy.percentile_threshold_ms,
                message=(
                    f"P{percentile} {percentile_value:.2f}ms exceeds "
                    f"{policy.percentile_threshold_ms:.2f}ms"
                ),
            )
        )

    if policy.critical_error_rate is not None and _rate_checks_enabled(
        metrics.total_count, policy
    ):
        error_rate = metrics.error_rate
        if error_rate > policy.critical_error_rate:
            violations.append(
                Violation(
                    type=ViolationType.ERROR_RATE,
                    severity=Severity.CRITICAL,
                    actual_value=error_rate * 100,
                    threshold=policy.critical_error_rate * 100,
                    message=(
                        f"Error rate {error_rate * 100:.2f}% exceeds "
                        f"{policy.critical_error_rate * 100:.2f}%"
                    ),
                )
            )

    return _record(violations, EvaluationMode.AGGREGATE.value)


def _slow_method_violation(
    hotspot: Hotspot, severity: Severity, threshold: float
) -> Violation:
    return Violation(
        type=ViolationType.SLOW_METHOD,
        severity=severity,
        actual_value=hotspot.avg_duration_ms,
        threshold=threshold,
        operation=hotspot.operation,
        message=(
            f"Method {hotspot.operation} avg {hotspot.avg_duration_ms:.2f}ms exceeds "
            f"{severity.value} threshold {threshold:.2f}ms"
        ),
    )


def _error_rate_violation(
    hotspot: Hotspot, severity: Severity, threshold: float
) -> Violation:
    return Violation(
        type=ViolationType.HIGH_ERROR_RATE,
        severity=severity,
        actual_value=hotspot.error_rate * 100,
        threshold=threshold * 100,
        operation=hotspot.operation,
        message=(
            f"Method {hotspot.operation} error rate {hotspot.error_rate * 100:.2f}% exceeds "
            f"{severity.value} threshold {threshold * 100:.2f}%"
        ),
    )


def _evaluate_hotspot(hotspot: Hotspot, policy: SLAPolicy) -> list[Violation]:
    violations: list[Violation] = []
    avg = hotspot.avg_duration_ms
    critical = policy.critical_duration_ms
    high = policy.high_duration_ms

    if critical is not None and avg > critical:
        hotspot.severity = Severity.CRITICAL
        violations.append(_slow_method_violation(hotspot, Severity.CRITICAL, critical))
    elif high is not None and avg > high:
        hotspot.severity = Severity.HIGH
        violations.append(_slow_method_violation(hotspot, Severity.HIGH, high))
    elif critical is not None or high is not None:
        hotspot.severity = Severity.MEDIUM

    if _rate_checks_enabled(hotspot.occurrence_count, policy):
        if (
            policy.critical_error_rate is not None
            and hotspot.error_rate > policy.critical_error_rate
        ):
            violations.append(
                _error_rate_violation(hotspot, Severity.CRITICAL, policy.critical_error_rate)
            )
        elif policy.high_error_rate is not None and hotspot.error_rate > policy.high_error_rate:
            violations.append(
                _error_rate_violation(hotspot, Severity.HIGH, policy.high_error_rate)
            )

    for violation in violations:
        hotspot.recommendations.append(f"SLA breach: {violation.message}")

    return violations


@instrumented
def evaluate_hotspots(hotspots: Sequence[Hotspot], policy: SLAPolicy) -> list[Violation]:
    """Checks each hotspot against the policy and re-grades its severity.

    The hotspots passed in are updated in place: their severity is set from
    the duration thresholds and a note is appended to their recommendations
    for every violation they cause.

    Raises:
        ValueError: If no policy is given.
    """
    policy = _require_policy(policy)
    violations: list[Violation] = []
    for hotspot in hotspots or []:
        violations.extend(_evaluate_hotspot(hotspot, policy))
    return _record(violations, EvaluationMode.HOTSPOT.value)


def evaluate(
    target: AggregateMetrics | Sequence[Hotspot], policy: SLAPolicy
) -> list[Violation]:
    """Dispatches to aggregate or hotspot mode depending on the input."""
    if isinstance(target, AggregateMetrics):
        return evaluate_aggregate(target, policy)
    return evaluate_hotspots(target, policy)


def evaluate_violations(
    metrics: AggregateMetrics,
    hotspots: Sequence[Hotspot],
    policy: SLAPolicy,
    mode: EvaluationMode = EvaluationMode.COMBINED,
) -> list[Violation]:
    """Runs the checks selected by ``mode``; aggregate violations come first."""
    violations: list[Violation] = []
    if mode in (EvaluationMode.AGGREGATE, EvaluationMode.COMBINED):
        violations.extend(evaluate_aggregate(metrics, policy))
    if mode in (EvaluationMode.HOTSPOT, EvaluationMode.COMBINED):
        violations.extend(evaluate_hotspots(hotspots, policy))
    logger.info(f"SLA evaluation ({mode.value}) found {len(violations)} violations")
    return violations
