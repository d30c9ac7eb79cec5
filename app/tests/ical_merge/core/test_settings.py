"""環境変数からの設定読み込みのテスト。"""

from __future__ import annotations

from pathlib import Path

import pytest

from ical_merge.core.settings import collect_config_overrides, load_settings


def test_defaults() -> None:
    settings = load_settings()

    assert settings.app_env == "local"
    assert settings.config_path == Path("config.json")
    assert settings.fetch_timeout_seconds == 30.0
    assert settings.watch_interval_seconds == 2.0
    assert settings.config_overrides == {}


def test_values_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APP_ENV", "prod")
    monkeypatch.setenv("ICAL_MERGE_CONFIG", "/etc/ical-merge/config.json")
    monkeypatch.setenv("ICAL_MERGE_FETCH_TIMEOUT", "5")
    monkeypatch.setenv("ICAL_MERGE_WATCH", "true")
    monkeypatch.setenv("ICAL_MERGE_WATCH_INTERVAL", "0.5")
    load_settings.cache_clear()

    settings = load_settings()

    assert settings.config_path == Path("/etc/ical-merge/config.json")
    assert settings.fetch_timeout_seconds == 5.0
    assert settings.watch_config is True
    assert settings.watch_interval_seconds == 0.5
    assert settings.app_env == "prod"


@pytest.mark.parametrize("raw", ["abc", "0", "-1"])
def test_invalid_fetch_timeout(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("ICAL_MERGE_FETCH_TIMEOUT", raw)
    load_settings.cache_clear()

    with pytest.raises(ValueError, match="ICAL_MERGE_FETCH_TIMEOUT"):
        load_settings()


def test_collect_config_overrides() -> None:
    environ = {
        "ICAL_MERGE_SERVER__PORT": "9090",
        "ICAL_MERGE_SERVER__BIND_ADDRESS": "0.0.0.0",
        "ICAL_MERGE_CONFIG": "config.json",
        "ICAL_MERGE_WATCH": "0",
        "ICAL_MERGE_WATCH_INTERVAL": "1",
        "HOME": "/root",
    }

    assert collect_config_overrides(environ) == {
        "server__port": 9090,
        "server__bind_address": "0.0.0.0",
    }
