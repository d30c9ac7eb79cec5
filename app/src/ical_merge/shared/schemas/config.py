"""設定ファイル（JSON）の生スキーマ。"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_STEP_FIELDS = ("summary", "description")


class MatchMode(str, Enum):
    """allow/deny の一致判定モード。"""

    ANY = "any"
    ALL = "all"


class CaseTransform(str, Enum):
    LOWER = "lower"
    UPPER = "upper"
    SENTENCE = "sentence"
    TITLE = "title"


class AllowStepConfig(BaseModel):
    """パターンに一致したイベントだけを残す。"""

    type: Literal["allow"]
    patterns: list[str]
    mode: MatchMode = MatchMode.ANY
    fields: list[str] = Field(default_factory=lambda: list(DEFAULT_STEP_FIELDS))

    model_config = ConfigDict(extra="forbid")


class DenyStepConfig(BaseModel):
    """パターンに一致したイベントを除外する。"""

    type: Literal["deny"]
    patterns: list[str]
    mode: MatchMode = MatchMode.ANY
    fields: list[str] = Field(default_factory=lambda: list(DEFAULT_STEP_FIELDS))

    model_config = ConfigDict(extra="forbid")


class ReplaceStepConfig(BaseModel):
    """正規表現で1項目を置換する。`$1` / `${name}` 形式の後方参照に対応。"""

    type: Literal["replace"]
    pattern: str
    replacement: str = ""
    field: str = "summary"

    model_config = ConfigDict(extra="forbid")


class StripStepConfig(BaseModel):
    type: Literal["strip"]
    field: str

    model_config = ConfigDict(extra="forbid")


class CaseStepConfig(BaseModel):
    type: Literal["case"]
    transform: CaseTransform
    field: str = "summary"

    model_config = ConfigDict(extra="forbid")


StepConfig = Annotated[
    Union[AllowStepConfig, DenyStepConfig, ReplaceStepConfig, StripStepConfig, CaseStepConfig],
    Field(discriminator="type"),
]


class UrlSourceConfig(BaseModel):
    """リモートフィードを取得するソース。"""

    url: str
    steps: list[StepConfig] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class CalendarSourceConfig(BaseModel):
    """設定済みの別カレンダーを参照するソース。"""

    calendar: str
    steps: list[StepConfig] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


# `url` と `calendar` のどちらを持つかで判別する（タグなし）。
SourceConfig = Union[UrlSourceConfig, CalendarSourceConfig]


class CalendarConfig(BaseModel):
    sources: list[SourceConfig]
    steps: list[StepConfig] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class ServerConfig(BaseModel):
    """待ち受けアドレス設定。"""

    bind_address: str = "127.0.0.1"
    port: int = Field(default=8080, ge=0, le=65535)

    model_config = ConfigDict(extra="forbid", frozen=True)


class RawConfig(BaseModel):
    """設定ファイル全体。"""

    server: ServerConfig = Field(default_factory=ServerConfig)
    calendars: dict[str, CalendarConfig]

    model_config = ConfigDict(extra="forbid")
