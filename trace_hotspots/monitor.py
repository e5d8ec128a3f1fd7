"""Scheduled SLA monitoring of configured targets.

A monitoring pass for one target queries its span source, summarizes the
snapshot, detects hotspots, optionally asks a narrative analyzer about the
worst of them, evaluates the SLA policy and, if anything was violated and
the target is not cooling down, hands an alert to the notifier.
"""

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from .config import AlertTarget, MonitorSettings
from .schema import AggregateMetrics, Hotspot, Severity, Span, Violation
from .sources.base import SpanQuery, SpanSource
from .telemetry import get_meter, get_tracer
from .tools.cooldown import AlertCooldownTracker
from .tools.hotspots import detect_hotspots
from .tools.normalizer import normalize_operation_name
from .tools.recommendations import default_recommendations, extract_recommendations
from .tools.sla import evaluate_violations
from .tools.statistics import summarize_spans

logger = logging.getLogger(__name__)

tracer = get_tracer(__name__)
meter = get_meter(__name__)

alerts_sent = meter.create_counter(
    name="trace_hotspots.alerts.sent",
    description="Alerts handed to the notifier",
    unit="1",
)
target_failures = meter.create_counter(
    name="trace_hotspots.monitor.target_failures",
    description="Monitoring passes that failed for a target",
    unit="1",
)


class CheckStatus(str, Enum):
    """Outcome of one monitoring pass."""

    NO_DATA = "no_data"
    OK = "ok"
    ALERTED = "alerted"
    SUPPRESSED = "suppressed"
    NO_RECIPIENTS = "no_recipients"
    FAILED = "failed"


class AlertNotification(BaseModel):
    """Everything a notifier needs to render and deliver an alert."""

    target: str = Field(description="Package name of the monitored target")
    subject: str
    severity: Severity
    recipients: list[str] = Field(default_factory=list)
    slack_channel: str | None = None
    violations: list[Violation] = Field(default_factory=list)
    hotspots: list[Hotspot] = Field(default_factory=list)
    statistics: dict[str, Any] = Field(
        default_factory=dict, description="AggregateMetrics.to_dict() of the snapshot"
    )
    analyses: dict[str, str] = Field(
        default_factory=dict, description="Narrative analysis per operation"
    )
    recommendations: dict[str, list[str]] = Field(
        default_factory=dict, description="Recommendations per operation"
    )


class MonitorResult(BaseModel):
    """Result of checking one target."""

    target: str
    status: CheckStatus
    span_count: int = 0
    metrics: AggregateMetrics | None = None
    hotspots: list[Hotspot] = Field(default_factory=list)
    violations: list[Violation] = Field(default_factory=list)
    analyses: dict[str, str] = Field(default_factory=dict)
    recommendations: dict[str, list[str]] = Field(default_factory=dict)
    notification: AlertNotification | None = None
    error: str | None = None


@runtime_checkable
class Notifier(Protocol):
    """Delivers alerts (e-mail, chat, paging...)."""

    def notify(self, notification: AlertNotification) -> None: ...


@runtime_checkable
class HotspotAnalyzer(Protocol):
    """Produces a free-text analysis of a hotspot, e.g. from an LLM."""

    def analyze(
        self, hotspot: Hotspot, slowest_span: Span | None, spans: Sequence[Span]
    ) -> str: ...


class LoggingNotifier:
    """Notifier that writes alerts to the log."""

    def __init__(self, log: logging.Logger | None = None):
        self._logger = log or logger

    def notify(self, notification: AlertNotification) -> None:
        self._logger.warning(
            f"🔴 {notification.subject} -> {', '.join(notification.recipients)}"
        )
        for violation in notification.violations:
            self._logger.warning(f"  [{violation.severity.value}] {violation.message}")


def resolve_recipients(target: AlertTarget, violations: Sequence[Violation]) -> list[str]:
    """Alert recipients for a set of violations.

    Critical and SLA-breach recipients are included only when a violation is
    CRITICAL; default recipients always are. Blank entries are dropped and
    duplicates removed, keeping the first occurrence.
    """
    recipients: list[str] = []
    if any(v.severity == Severity.CRITICAL for v in violations):
        recipients.extend(target.recipients.critical)
        recipients.extend(target.recipients.sla_breach_recipients)
    recipients.extend(target.recipients.default_recipients)

    resolved: list[str] = []
    for recipient in recipients:
        if recipient and recipient.strip() and recipient not in resolved:
            resolved.append(recipient)
    return resolved


def alert_severity(violations: Sequence[Violation]) -> Severity:
    if any(v.severity == Severity.CRITICAL for v in violations):
        return Severity.CRITICAL
    return Severity.HIGH


def build_subject(target: AlertTarget, violations: Sequence[Violation]) -> str:
    return (
        f"[{alert_severity(violations).value}] SLA Alert - "
        f"{target.display_name} - {len(violations)} violations"
    )


def cooldown_key(target: AlertTarget) -> str:
    return f"alert_{target.package_name}"


class SlaMonitor:
    """Runs monitoring passes over the configured targets."""

    def __init__(
        self,
        source: SpanSource,
        notifier: Notifier,
        settings: MonitorSettings | None = None,
        tracker: AlertCooldownTracker | None = None,
        analyzer: HotspotAnalyzer | None = None,
    ):
        self.source = source
        self.notifier = notifier
        self.settings = settings or MonitorSettings()
        self.tracker = tracker or AlertCooldownTracker(cooldown=self.settings.cooldown)
        self.analyzer = analyzer

    def _analyze(
        self, hotspots: Sequence[Hotspot], spans: Sequence[Span]
    ) -> tuple[dict[str, str], dict[str, list[str]]]:
        analyses: dict[str, str] = {}
        recommendations: dict[str, list[str]] = {}

        for hotspot in hotspots[: self.settings.analyze_top_n]:
            if self.analyzer is None:
                recommendations[hotspot.operation] = default_recommendations(hotspot)
                continue

            operation_spans = [
                s
                for s in spans
                if normalize_operation_name(s.operation_name) == hotspot.normalized_operation
            ]
            slowest = max(operation_spans, key=lambda s: s.duration_ms, default=None)
            try:
                analysis = self.analyzer.analyze(hotspot, slowest, operation_spans)
                analyses[hotspot.operation] = analysis
                recommendations[hotspot.operation] = extract_recommendations(analysis)
            except Exception as e:
                logger.warning(f"Analysis failed for {hotspot.operation}: {e}")
                recommendations[hotspot.operation] = default_recommendations(hotspot)

        return analyses, recommendations

    def check_target(self, target: AlertTarget) -> MonitorResult:
        """Runs one monitoring pass for ``target``; never raises."""
        with tracer.start_as_current_span("sla_monitor.check_target") as span:
            span.set_attribute("trace_hotspots.target", target.package_name)
            logger.info(
                f"Checking SLA for: {target.package_name} (TimeRange: {target.time_range})"
            )
            try:
                return self._check_target(target)
            except Exception as e:
                target_failures.add(1, {"target": target.package_name})
                span.record_exception(e)
                logger.error(f"Error in SLA check for {target.package_name}: {e}", exc_info=True)
                return MonitorResult(
                    target=target.package_name, status=CheckStatus.FAILED, error=str(e)
                )

    def _check_target(self, target: AlertTarget) -> MonitorResult:
        query = SpanQuery(
            time_range=target.time_range,
            duration_threshold_ms=target.duration_threshold_ms,
            cloud_role_name=target.cloud_role_name,
            package_name=target.package_name,
            include_sub_packages=target.include_sub_packages,
        )
        spans = self.source.query_spans(query)
        if not spans:
            logger.debug(f"No spans found for {target.package_name}")
            return MonitorResult(target=target.package_name, status=CheckStatus.NO_DATA)

        metrics = summarize_spans(spans)
        hotspots = detect_hotspots(spans)
        analyses, recommendations = self._analyze(hotspots, spans)
        violations = evaluate_violations(
            metrics, hotspots, target.sla, self.settings.evaluation_mode
        )

        result = MonitorResult(
            target=target.package_name,
            status=CheckStatus.OK,
            span_count=len(spans),
            metrics=metrics,
            hotspots=hotspots,
            violations=violations,
            analyses=analyses,
            recommendations=recommendations,
        )
        if not violations:
            return result

        if not self.tracker.should_alert(cooldown_key(target)):
            result.status = CheckStatus.SUPPRESSED
            return result

        notification = AlertNotification(
            target=target.package_name,
            subject=build_subject(target, violations),
            severity=alert_severity(violations),
            recipients=resolve_recipients(target, violations),
            slack_channel=target.slack_channel,
            violations=violations,
            hotspots=hotspots,
            statistics=metrics.to_dict(),
            analyses=analyses,
            recommendations=recommendations,
        )
        result.notification = notification

        if not notification.recipients and not notification.slack_channel:
            logger.warning(f"No recipients configured for {target.package_name}")
            result.status = CheckStatus.NO_RECIPIENTS
            return result

        self.notifier.notify(notification)
        alerts_sent.add(1, {"severity": notification.severity.value})
        logger.info(
            f"Alert sent for {target.package_name} to {len(notification.recipients)} recipients"
        )
        result.status = CheckStatus.ALERTED
        return result

    def check_all_targets(self) -> list[MonitorResult]:
        """Checks every alert-enabled target; results keep the target order."""
        targets = self.settings.alert_enabled_targets()
        logger.info(f"Starting scheduled SLA checks for {len(targets)} targets")

        if self.settings.max_workers > 1 and len(targets) > 1:
            with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
                results = list(executor.map(self.check_target, targets))
        else:
            results = [self.check_target(t) for t in targets]

        alerted = sum(1 for r in results if r.status == CheckStatus.ALERTED)
        logger.info(f"SLA checks complete: {len(results)} targets, {alerted} alerted")
        return results
