"""設定スナップショットの構築と検証。

生の設定データ（JSON 由来の dict）と環境変数の上書きを受け取り、
完全に検証済みでイミュータブルな `ConfigurationSnapshot` を返す。
検証に失敗した場合は ConfigError を送出し、部分的な結果は作らない。
"""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Union

from pydantic import ValidationError

from ical_merge.core.errors import ConfigError
from ical_merge.core.steps import CompiledStep, compile_steps
from ical_merge.shared.schemas.config import (
    CalendarSourceConfig,
    RawConfig,
    ServerConfig,
    UrlSourceConfig,
)

CALENDAR_REF_PREFIX = "calendar:"


@dataclass(frozen=True, slots=True)
class UrlSource:
    url: str
    steps: tuple[CompiledStep, ...] = ()

    @property
    def identifier(self) -> str:
        return self.url


@dataclass(frozen=True, slots=True)
class CalendarRefSource:
    calendar_name: str
    steps: tuple[CompiledStep, ...] = ()

    @property
    def identifier(self) -> str:
        return f"{CALENDAR_REF_PREFIX}{self.calendar_name}"


SourceDefinition = Union[UrlSource, CalendarRefSource]


@dataclass(frozen=True, slots=True)
class CalendarDefinition:
    name: str
    sources: tuple[SourceDefinition, ...]
    steps: tuple[CompiledStep, ...] = ()

    def referenced_calendars(self) -> list[str]:
        return [s.calendar_name for s in self.sources if isinstance(s, CalendarRefSource)]


@dataclass(frozen=True, slots=True)
class ConfigurationSnapshot:
    """検証済み設定の1世代分。リクエスト間で読み取り専用に共有される。"""

    calendars: Mapping[str, CalendarDefinition]
    server: ServerConfig = field(default_factory=ServerConfig)
    generation: int = 0

    def get(self, name: str) -> CalendarDefinition | None:
        return self.calendars.get(name)


def load_config(
    raw: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> ConfigurationSnapshot:
    """生の設定データを検証し ConfigurationSnapshot を構築する。"""

    merged = apply_overrides(raw, overrides or {})
    try:
        parsed = RawConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"設定の構造が不正です: {exc}") from exc

    if not parsed.calendars:
        raise ConfigError("カレンダーが1つも設定されていません。")

    calendars: dict[str, CalendarDefinition] = {}
    for name, calendar in parsed.calendars.items():
        if not calendar.sources:
            raise ConfigError(f"カレンダー '{name}' にソースがありません。")

        sources: list[SourceDefinition] = []
        for index, source in enumerate(calendar.sources):
            context = f"カレンダー '{name}' source {index}"
            steps = compile_steps(source.steps, context=context)
            if isinstance(source, UrlSourceConfig):
                if not source.url:
                    raise ConfigError(f"{context} の URL が空です。")
                sources.append(UrlSource(url=source.url, steps=steps))
            elif isinstance(source, CalendarSourceConfig):
                if not source.calendar:
                    raise ConfigError(f"{context} のカレンダー参照が空です。")
                if source.calendar not in parsed.calendars:
                    raise ConfigError(
                        f"{context} が存在しないカレンダー '{source.calendar}' を参照しています。"
                    )
                sources.append(CalendarRefSource(calendar_name=source.calendar, steps=steps))

        calendars[name] = CalendarDefinition(
            name=name,
            sources=tuple(sources),
            steps=compile_steps(calendar.steps, context=f"カレンダー '{name}'"),
        )

    detect_cycles(calendars)
    return ConfigurationSnapshot(calendars=MappingProxyType(calendars), server=parsed.server)


def load_config_text(
    text: str,
    overrides: Mapping[str, Any] | None = None,
) -> ConfigurationSnapshot:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"設定ファイルの JSON が不正です: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigError("設定ファイルのトップレベルはオブジェクトである必要があります。")
    return load_config(raw, overrides)


def read_config_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"設定ファイル {path} を読み込めません: {exc}") from exc


def detect_cycles(calendars: Mapping[str, CalendarDefinition]) -> None:
    """カレンダー参照グラフの循環（自己参照を含む）を深さ優先探索で検出する。

    探索中（スタック上）のノードに再到達したら循環。探索済みのノードは
    再探索しない。
    """

    visiting: set[str] = set()
    done: set[str] = set()

    def visit(name: str, path: list[str]) -> None:
        if name in visiting:
            cycle = path[path.index(name) :] + [name]
            raise ConfigError(f"カレンダーの循環参照を検出しました: {' -> '.join(cycle)}")
        if name in done:
            return

        visiting.add(name)
        path.append(name)
        definition = calendars.get(name)
        if definition is not None:
            for referenced in definition.referenced_calendars():
                visit(referenced, path)
        path.pop()
        visiting.discard(name)
        done.add(name)

    for name in calendars:
        visit(name, [])


def apply_overrides(raw: Mapping[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """`server__port` のような `__` 区切りのキーで生設定を上書きした複製を返す。"""

    merged: dict[str, Any] = copy.deepcopy(dict(raw))
    for key, value in overrides.items():
        path = [part for part in key.lower().split("__") if part]
        if not path:
            continue
        target = merged
        for part in path[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        target[path[-1]] = value
    return merged
