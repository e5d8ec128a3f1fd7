"""Tests for monitor configuration loading."""

import json
from datetime import timedelta

import pytest

from trace_hotspots.config import AlertTarget, MonitorSettings, load_settings, parse_time_range
from trace_hotspots.exceptions import ConfigurationError
from trace_hotspots.schema import EvaluationMode


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("TRACE_HOTSPOTS_BACKEND", raising=False)
    monkeypatch.delenv("ALERT_COOLDOWN_MINUTES", raising=False)


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "backend": "json_file",
                "backend_options": {"path": "/tmp/spans.json"},
                "cooldown_minutes": 10,
                "evaluation_mode": "hotspot",
                "targets": [
                    {
                        "package_name": "com.acme.orders",
                        "project": "Orders",
                        "enabled": True,
                        "time_range": "1h",
                        "recipients": {"default_recipients": ["ops@acme.test"]},
                        "sla": {"critical_duration_ms": 5000, "percentile": 99},
                    },
                    {"package_name": "com.acme.billing"},
                ],
            }
        )
    )
    return path


@pytest.mark.parametrize(
    "value,expected",
    [
        ("15m", timedelta(minutes=15)),
        ("30s", timedelta(seconds=30)),
        ("2h", timedelta(hours=2)),
        ("1d", timedelta(days=1)),
    ],
)
def test_parse_time_range(value, expected):
    assert parse_time_range(value) == expected


@pytest.mark.parametrize("value", ["", "15", "m15", "15w", "-5m"])
def test_parse_time_range_invalid(value):
    with pytest.raises(ConfigurationError):
        parse_time_range(value)


def test_load_settings(settings_file):
    settings = load_settings(settings_file)

    assert settings.backend == "json_file"
    assert settings.cooldown == timedelta(minutes=10)
    assert settings.evaluation_mode == EvaluationMode.HOTSPOT
    assert len(settings.targets) == 2

    enabled = settings.alert_enabled_targets()
    assert [t.package_name for t in enabled] == ["com.acme.orders"]
    target = enabled[0]
    assert target.window == timedelta(hours=1)
    assert target.display_name == "Orders"
    assert target.sla.critical_duration_ms == 5000
    assert target.sla.percentile == 99
    assert target.sla.high_duration_ms is None


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(tmp_path / "absent.json")

    assert settings.backend == "memory"
    assert settings.cooldown_minutes == 30
    assert settings.max_workers == 1
    assert settings.evaluation_mode == EvaluationMode.COMBINED
    assert settings.targets == []


def test_env_overrides(settings_file, monkeypatch):
    monkeypatch.setenv("TRACE_HOTSPOTS_BACKEND", "memory")
    monkeypatch.setenv("ALERT_COOLDOWN_MINUTES", "45")

    settings = load_settings(settings_file)

    assert settings.backend == "memory"
    assert settings.cooldown_minutes == 45


def test_bad_cooldown_env(tmp_path, monkeypatch):
    monkeypatch.setenv("ALERT_COOLDOWN_MINUTES", "soon")
    with pytest.raises(ConfigurationError):
        load_settings(tmp_path / "absent.json")


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        "[1, 2]",
        json.dumps({"targets": [{"package_name": "x", "time_range": "forever"}]}),
        json.dumps({"targets": [{"package_name": "x", "sla": {"percentile": 42}}]}),
        json.dumps({"max_workers": 0}),
    ],
)
def test_invalid_settings(tmp_path, content):
    path = tmp_path / "settings.json"
    path.write_text(content)

    with pytest.raises(ConfigurationError):
        load_settings(path)


def test_display_name_falls_back_to_package():
    assert AlertTarget(package_name="com.acme").display_name == "com.acme"


def test_settings_defaults():
    settings = MonitorSettings()
    assert settings.analyze_top_n == 5
    assert settings.alert_enabled_targets() == []
