from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pytest

from followup_kit.core.config import get_settings, reset_settings_cache


@pytest.fixture(autouse=True)
def _fresh_settings():
    reset_settings_cache()
    yield
    reset_settings_cache()


def test_defaults(monkeypatch):
    for name in (
        "FOLLOW_UP_INTERVAL_SECONDS",
        "FOLLOW_UP_DISPATCH_CONCURRENCY",
        "FOLLOW_UP_SCHEDULER_AUTOSTART",
        "BUSINESS_TIMEZONE",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("OPENAI_API_KEY", "")

    settings = get_settings()

    assert settings.scheduler_interval_seconds == 60
    assert settings.dispatch_concurrency == 4
    assert settings.scheduler_autostart is True
    assert settings.tz == ZoneInfo("Europe/Berlin")
    assert settings.llm_enabled is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("FOLLOW_UP_INTERVAL_SECONDS", "15")
    monkeypatch.setenv("FOLLOW_UP_DISPATCH_CONCURRENCY", "8")
    monkeypatch.setenv("FOLLOW_UP_SCHEDULER_AUTOSTART", "off")
    monkeypatch.setenv("BUSINESS_TIMEZONE", "Europe/Vienna")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    settings = get_settings()

    assert settings.scheduler_interval_seconds == 15
    assert settings.dispatch_concurrency == 8
    assert settings.scheduler_autostart is False
    assert settings.business_timezone == "Europe/Vienna"
    assert settings.llm_enabled is True
    assert get_settings() is settings


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("FOLLOW_UP_INTERVAL_SECONDS", "0"),
        ("FOLLOW_UP_DISPATCH_CONCURRENCY", "0"),
    ],
)
def test_invalid_values_are_rejected(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(RuntimeError):
        get_settings()


def test_unknown_timezone_is_rejected(monkeypatch):
    monkeypatch.setenv("BUSINESS_TIMEZONE", "Mars/Olympus")

    with pytest.raises(ZoneInfoNotFoundError):
        get_settings()
