"""アプリ全体で共有する設定読み込みロジック。"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

_LOCAL_ENV = "local"
_ENV_PREFIX = "ICAL_MERGE_"
_DEFAULT_CONFIG_PATH = "config.json"
_DEFAULT_FETCH_TIMEOUT = 30.0
_DEFAULT_WATCH_INTERVAL = 2.0

# プロセス設定として使う環境変数。設定ファイルの上書きには回さない。
_RESERVED_ENV = {
    f"{_ENV_PREFIX}CONFIG",
    f"{_ENV_PREFIX}FETCH_TIMEOUT",
    f"{_ENV_PREFIX}WATCH",
    f"{_ENV_PREFIX}WATCH_INTERVAL",
}


@dataclass(slots=True)
class Settings:
    """環境変数から組み立てるプロセス設定。"""

    app_env: str
    config_path: Path
    fetch_timeout_seconds: float
    watch_config: bool
    watch_interval_seconds: float
    log_level: str
    config_overrides: dict[str, Any] = field(default_factory=dict)


def _parse_bool(raw: str | None, *, default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _parse_float(name: str, raw: str | None, *, default: float) -> float:
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"環境変数 {name} は数値である必要があります。") from exc
    if value <= 0:
        raise ValueError(f"環境変数 {name} は正の数である必要があります。")
    return value


def _parse_override_value(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def collect_config_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """`ICAL_MERGE_SERVER__PORT=9090` → `{"server__port": 9090}` のように抽出する。"""

    overrides: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(_ENV_PREFIX) or name in _RESERVED_ENV:
            continue
        key = name[len(_ENV_PREFIX) :].lower()
        if key:
            overrides[key] = _parse_override_value(raw)
    return overrides


@lru_cache(maxsize=1)
def load_settings() -> Settings:
    """環境変数から設定を構築する。"""

    return Settings(
        app_env=os.getenv("APP_ENV", _LOCAL_ENV),
        config_path=Path(os.getenv(f"{_ENV_PREFIX}CONFIG", _DEFAULT_CONFIG_PATH)),
        fetch_timeout_seconds=_parse_float(
            f"{_ENV_PREFIX}FETCH_TIMEOUT",
            os.getenv(f"{_ENV_PREFIX}FETCH_TIMEOUT"),
            default=_DEFAULT_FETCH_TIMEOUT,
        ),
        watch_config=_parse_bool(os.getenv(f"{_ENV_PREFIX}WATCH"), default=True),
        watch_interval_seconds=_parse_float(
            f"{_ENV_PREFIX}WATCH_INTERVAL",
            os.getenv(f"{_ENV_PREFIX}WATCH_INTERVAL"),
            default=_DEFAULT_WATCH_INTERVAL,
        ),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        config_overrides=collect_config_overrides(os.environ),
    )
