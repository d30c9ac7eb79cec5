"""イベント単位のフィルタ/変換パイプライン。

設定ロード時に `compile_steps` で正規表現を一度だけコンパイルし、
リクエスト時は `apply_steps` / `process_events` でイベントを順に処理する。
ステップは設定順に実行され、最初に REJECT したところで打ち切る。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence, Union

from ical_merge.core.errors import ConfigError, RegexError
from ical_merge.core.models import Event
from ical_merge.shared.schemas.config import (
    AllowStepConfig,
    CaseStepConfig,
    CaseTransform,
    DenyStepConfig,
    MatchMode,
    ReplaceStepConfig,
    StepConfig,
    StripStepConfig,
)

STRIP_REMINDER_FIELD = "reminder"

_REPLACEMENT_REF = re.compile(r"\$(?:\$|\{([^}]*)\}|([0-9A-Za-z_]+))")


class StepResult(Enum):
    KEEP = "keep"
    REJECT = "reject"


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """コンパイル済みパターンと照合対象の項目。"""

    regex: re.Pattern[str]
    fields: tuple[str, ...]

    def matches(self, event: Event) -> bool:
        for field_name in self.fields:
            text = event.get_text(field_name)
            if text is not None and self.regex.search(text):
                return True
        return False


@dataclass(frozen=True, slots=True)
class AllowStep:
    patterns: tuple[CompiledPattern, ...]
    mode: MatchMode


@dataclass(frozen=True, slots=True)
class DenyStep:
    patterns: tuple[CompiledPattern, ...]
    mode: MatchMode


@dataclass(frozen=True, slots=True)
class ReplaceStep:
    regex: re.Pattern[str]
    # `re.sub` 用に変換済みのテンプレート
    template: str
    field: str


@dataclass(frozen=True, slots=True)
class StripStep:
    field: str


@dataclass(frozen=True, slots=True)
class CaseStep:
    transform: CaseTransform
    field: str


CompiledStep = Union[AllowStep, DenyStep, ReplaceStep, StripStep, CaseStep]


def compile_step(step: StepConfig) -> CompiledStep:
    """ステップ設定をコンパイルする。不正な正規表現は RegexError。"""

    if isinstance(step, (AllowStepConfig, DenyStepConfig)):
        if not step.patterns:
            raise ConfigError(f"{step.type} ステップに patterns がありません。")
        fields = tuple(step.fields)
        patterns = tuple(CompiledPattern(_compile_regex(p), fields) for p in step.patterns)
        if isinstance(step, AllowStepConfig):
            return AllowStep(patterns=patterns, mode=step.mode)
        return DenyStep(patterns=patterns, mode=step.mode)

    if isinstance(step, ReplaceStepConfig):
        regex = _compile_regex(step.pattern)
        return ReplaceStep(
            regex=regex,
            template=compile_replacement(regex, step.replacement),
            field=step.field,
        )

    if isinstance(step, StripStepConfig):
        if step.field != STRIP_REMINDER_FIELD:
            raise ConfigError(
                f"strip ステップの field '{step.field}' は未対応です（'reminder' のみ対応）。"
            )
        return StripStep(field=step.field)

    if isinstance(step, CaseStepConfig):
        return CaseStep(transform=step.transform, field=step.field)

    raise ConfigError(f"未知のステップ種別です: {step!r}")


def compile_steps(steps: Sequence[StepConfig], *, context: str) -> tuple[CompiledStep, ...]:
    """ステップ列をコンパイルする。エラーには `context` と位置を付与する。"""

    compiled: list[CompiledStep] = []
    for index, step in enumerate(steps):
        try:
            compiled.append(compile_step(step))
        except RegexError as exc:
            raise RegexError(f"{context} step {index}: {exc}") from exc
        except ConfigError as exc:
            raise ConfigError(f"{context} step {index}: {exc}") from exc
    return tuple(compiled)


def apply_step(event: Event, step: CompiledStep) -> StepResult:
    """1ステップを適用する。変換系ステップは event をその場で書き換える。"""

    if isinstance(step, AllowStep):
        return StepResult.KEEP if _matches(step.patterns, step.mode, event) else StepResult.REJECT

    if isinstance(step, DenyStep):
        return StepResult.REJECT if _matches(step.patterns, step.mode, event) else StepResult.KEEP

    if isinstance(step, ReplaceStep):
        text = event.get_text(step.field)
        if text is not None:
            event.set_text(step.field, step.regex.sub(step.template, text))
        return StepResult.KEEP

    if isinstance(step, StripStep):
        if step.field == STRIP_REMINDER_FIELD:
            event.strip_alarms()
        return StepResult.KEEP

    if isinstance(step, CaseStep):
        text = event.get_text(step.field)
        if text is not None:
            event.set_text(step.field, transform_case(text, step.transform))
        return StepResult.KEEP

    raise TypeError(f"未知のステップです: {step!r}")


def apply_steps(event: Event, steps: Iterable[CompiledStep]) -> StepResult:
    for step in steps:
        if apply_step(event, step) is StepResult.REJECT:
            return StepResult.REJECT
    return StepResult.KEEP


def process_events(events: Iterable[Event], steps: Sequence[CompiledStep]) -> list[Event]:
    """全イベントにステップ列を適用し、残ったものだけを順序どおり返す。"""

    if not steps:
        return list(events)
    return [event for event in events if apply_steps(event, steps) is StepResult.KEEP]


def transform_case(text: str, transform: CaseTransform) -> str:
    if transform is CaseTransform.LOWER:
        return text.lower()
    if transform is CaseTransform.UPPER:
        return text.upper()
    if transform is CaseTransform.SENTENCE:
        return _capitalize(text)
    # TITLE: 空白区切りの各単語。区切りは半角スペース1つに正規化される。
    return " ".join(_capitalize(word) for word in text.split())


def compile_replacement(regex: re.Pattern[str], replacement: str) -> str:
    """`$1` / `${name}` 形式の置換文字列を `re.sub` のテンプレートへ変換する。

    パターンに存在しないグループへの参照は空文字になる。`$$` はドル記号、
    バックスラッシュを含むそれ以外の文字はそのまま出力される。
    """

    parts: list[str] = []
    position = 0
    for match in _REPLACEMENT_REF.finditer(replacement):
        parts.append(_escape_template(replacement[position : match.start()]))
        position = match.end()

        if match.group(0) == "$$":
            parts.append("$")
            continue

        name = match.group(1) if match.group(1) is not None else match.group(2)
        if not name:
            parts.append(_escape_template(match.group(0)))
            continue
        parts.append(_group_reference(regex, name))

    parts.append(_escape_template(replacement[position:]))
    return "".join(parts)


def _group_reference(regex: re.Pattern[str], name: str) -> str:
    if name.isdigit():
        index = int(name)
        return f"\\g<{index}>" if index <= regex.groups else ""
    if name in regex.groupindex:
        return f"\\g<{name}>"
    return ""


def _escape_template(text: str) -> str:
    return text.replace("\\", "\\\\")


def _matches(patterns: Sequence[CompiledPattern], mode: MatchMode, event: Event) -> bool:
    if mode is MatchMode.ALL:
        return all(pattern.matches(event) for pattern in patterns)
    return any(pattern.matches(event) for pattern in patterns)


def _capitalize(word: str) -> str:
    if not word:
        return ""
    return word[0].upper() + word[1:].lower()


def _compile_regex(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise RegexError(f"正規表現 '{pattern}' が不正です: {exc}") from exc
