"""Tests for the SLA monitor."""

import logging
from unittest.mock import MagicMock

import pytest

from trace_hotspots.config import AlertRecipients, AlertTarget, MonitorSettings
from trace_hotspots.exceptions import SpanSourceError
from trace_hotspots.monitor import (
    AlertNotification,
    CheckStatus,
    HotspotAnalyzer,
    LoggingNotifier,
    Notifier,
    SlaMonitor,
    build_subject,
    resolve_recipients,
)
from trace_hotspots.schema import Severity, SLAPolicy, Violation, ViolationType
from trace_hotspots.sources.memory import InMemorySpanSource
from trace_hotspots.tools.cooldown import AlertCooldownTracker


def _target(**overrides):
    fields = {
        "package_name": "svc",
        "project": "Orders",
        "enabled": True,
        "recipients": AlertRecipients(
            default_recipients=["", "team@acme.test"],
            critical=["oncall@acme.test"],
            sla_breach_recipients=["sre@acme.test", "oncall@acme.test"],
        ),
        "sla": SLAPolicy(critical_duration_ms=5000, high_duration_ms=2000),
    }
    fields.update(overrides)
    return AlertTarget(**fields)


def _violation(severity):
    return Violation(
        type=ViolationType.SLOW_METHOD,
        severity=severity,
        actual_value=1,
        threshold=0,
        message="slow",
    )


@pytest.fixture
def notifier():
    return MagicMock(spec=LoggingNotifier)


@pytest.fixture
def source(foo_spans, base_time):
    return InMemorySpanSource(foo_spans, clock=lambda: base_time)


@pytest.fixture
def monitor(source, notifier):
    return SlaMonitor(source=source, notifier=notifier, tracker=AlertCooldownTracker())


class TestRecipients:
    def test_critical_violation_includes_escalation_lists(self):
        recipients = resolve_recipients(_target(), [_violation(Severity.CRITICAL)])
        assert recipients == ["oncall@acme.test", "sre@acme.test", "team@acme.test"]

    def test_high_violation_only_default_list(self):
        recipients = resolve_recipients(_target(), [_violation(Severity.HIGH)])
        assert recipients == ["team@acme.test"]

    def test_subject(self):
        assert build_subject(_target(), [_violation(Severity.HIGH)] * 3) == (
            "[HIGH] SLA Alert - Orders - 3 violations"
        )
        assert build_subject(
            _target(project=None),
            [_violation(Severity.HIGH), _violation(Severity.CRITICAL)],
        ) == "[CRITICAL] SLA Alert - svc - 2 violations"


class TestCheckTarget:
    def test_alert_sent(self, monitor, notifier):
        result = monitor.check_target(_target())

        assert result.status == CheckStatus.ALERTED
        assert result.span_count == 3
        assert [v.type for v in result.violations] == [
            ViolationType.RESPONSE_TIME,
            ViolationType.SLOW_METHOD,
        ]
        notifier.notify.assert_called_once()
        notification = notifier.notify.call_args.args[0]
        assert isinstance(notification, AlertNotification)
        assert notification.subject == "[CRITICAL] SLA Alert - Orders - 2 violations"
        assert notification.severity == Severity.CRITICAL
        assert notification.recipients == [
            "oncall@acme.test",
            "sre@acme.test",
            "team@acme.test",
        ]
        assert notification.statistics["totalCount"] == 3
        assert notification.hotspots[0].operation == "svc.Foo"

    def test_second_alert_is_suppressed(self, monitor, notifier):
        monitor.check_target(_target())
        result = monitor.check_target(_target())

        assert result.status == CheckStatus.SUPPRESSED
        assert result.notification is None
        notifier.notify.assert_called_once()

    def test_no_violations(self, monitor, notifier):
        result = monitor.check_target(_target(sla=SLAPolicy(critical_duration_ms=20000)))

        assert result.status == CheckStatus.OK
        assert result.violations == []
        notifier.notify.assert_not_called()

    def test_no_data(self, monitor, notifier):
        result = monitor.check_target(_target(package_name="com.elsewhere"))

        assert result.status == CheckStatus.NO_DATA
        notifier.notify.assert_not_called()

    def test_duration_threshold_filters_query(self, monitor):
        result = monitor.check_target(_target(duration_threshold_ms=5000))
        assert result.span_count == 2

    def test_no_recipients(self, monitor, notifier):
        result = monitor.check_target(_target(recipients=AlertRecipients()))

        assert result.status == CheckStatus.NO_RECIPIENTS
        assert result.notification is not None
        notifier.notify.assert_not_called()

    def test_slack_channel_is_enough(self, monitor, notifier):
        result = monitor.check_target(
            _target(recipients=AlertRecipients(), slack_channel="#orders-alerts")
        )

        assert result.status == CheckStatus.ALERTED
        assert notifier.notify.call_args.args[0].slack_channel == "#orders-alerts"

    def test_source_failure_is_reported(self, notifier):
        source = MagicMock()
        source.query_spans.side_effect = SpanSourceError("backend down", backend="memory")
        monitor = SlaMonitor(source=source, notifier=notifier)

        result = monitor.check_target(_target())

        assert result.status == CheckStatus.FAILED
        assert result.error == "backend down"
        notifier.notify.assert_not_called()


class TestAnalysis:
    def test_default_recommendations_without_analyzer(self, monitor):
        result = monitor.check_target(_target())

        assert result.analyses == {}
        assert result.recommendations["svc.Foo"][0] == (
            "Consider implementing caching to reduce response time"
        )

    def test_analyzer_output_kept_separately(self, source, notifier):
        analyzer = MagicMock()
        analyzer.analyze.return_value = "Findings\n1. Add caching for the lookup results"
        monitor = SlaMonitor(source=source, notifier=notifier, analyzer=analyzer)

        result = monitor.check_target(_target())

        hotspot, slowest, spans = analyzer.analyze.call_args.args
        assert hotspot.operation == "svc.Foo"
        assert slowest.duration_ms == 11000
        assert len(spans) == 3
        assert result.analyses["svc.Foo"].startswith("Findings")
        assert result.recommendations["svc.Foo"] == ["Add caching for the lookup results"]
        assert "Add caching for the lookup results" not in result.hotspots[0].recommendations

    def test_analyzer_failure_falls_back(self, source, notifier):
        analyzer = MagicMock()
        analyzer.analyze.side_effect = RuntimeError("model unavailable")
        monitor = SlaMonitor(source=source, notifier=notifier, analyzer=analyzer)

        result = monitor.check_target(_target())

        assert result.status == CheckStatus.ALERTED
        assert result.analyses == {}
        assert result.recommendations["svc.Foo"][0] == (
            "Consider implementing caching to reduce response time"
        )

    def test_analyze_top_n(self, source, notifier):
        analyzer = MagicMock()
        monitor = SlaMonitor(
            source=source,
            notifier=notifier,
            analyzer=analyzer,
            settings=MonitorSettings(analyze_top_n=0),
        )

        result = monitor.check_target(_target())

        analyzer.analyze.assert_not_called()
        assert result.recommendations == {}


@pytest.mark.parametrize("max_workers", [1, 4])
def test_check_all_targets(foo_spans, notifier, max_workers):
    def query_spans(query):
        if query.package_name == "broken":
            raise SpanSourceError("backend down")
        return foo_spans

    source = MagicMock()
    source.query_spans.side_effect = query_spans
    settings = MonitorSettings(
        max_workers=max_workers,
        targets=[
            _target(package_name="broken"),
            _target(package_name="svc"),
            _target(package_name="disabled", enabled=False),
            _target(package_name="other", sla=SLAPolicy()),
        ],
    )
    monitor = SlaMonitor(source=source, notifier=notifier, settings=settings)

    results = monitor.check_all_targets()

    assert [(r.target, r.status) for r in results] == [
        ("broken", CheckStatus.FAILED),
        ("svc", CheckStatus.ALERTED),
        ("other", CheckStatus.OK),
    ]
    notifier.notify.assert_called_once()


def test_settings_cooldown_used_for_tracker(source, notifier):
    monitor = SlaMonitor(
        source=source, notifier=notifier, settings=MonitorSettings(cooldown_minutes=5)
    )
    assert monitor.tracker.cooldown.total_seconds() == 300


def test_protocols():
    assert isinstance(LoggingNotifier(), Notifier)
    analyzer = MagicMock(spec=["analyze"])
    assert isinstance(analyzer, HotspotAnalyzer)


def test_logging_notifier(caplog):
    notification = AlertNotification(
        target="svc",
        subject="[HIGH] SLA Alert - svc - 1 violations",
        severity=Severity.HIGH,
        recipients=["team@acme.test"],
        violations=[_violation(Severity.HIGH)],
    )

    with caplog.at_level(logging.WARNING, logger="trace_hotspots.monitor"):
        LoggingNotifier().notify(notification)

    assert "[HIGH] SLA Alert - svc - 1 violations" in caplog.text
    assert "team@acme.test" in caplog.text
    assert "[HIGH] slow" in caplog.text
