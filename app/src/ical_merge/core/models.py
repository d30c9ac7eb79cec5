"""マージ処理で共有するデータモデル。"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from icalendar import Event as ICalEvent

TEXT_FIELDS: tuple[str, ...] = ("summary", "description", "location")

_ALARM_COMPONENT = "VALARM"


@dataclass(slots=True)
class Event:
    """`icalendar.Event` を包み、ステップ処理に必要なアクセサを提供する。

    リクエストごとにフィードから生成され、そのマージ呼び出しだけが所有する。
    ステップはこのオブジェクトをその場で書き換える。
    """

    component: ICalEvent

    @property
    def uid(self) -> str | None:
        return self._get("UID")

    @property
    def summary(self) -> str | None:
        return self._get("SUMMARY")

    @property
    def description(self) -> str | None:
        return self._get("DESCRIPTION")

    @property
    def location(self) -> str | None:
        return self._get("LOCATION")

    @property
    def start(self) -> date | None:
        return self._get_datetime("DTSTART")

    @property
    def end(self) -> date | None:
        return self._get_datetime("DTEND")

    def get_text(self, field_name: str) -> str | None:
        """テキスト項目を返す。未対応の項目名は常に None。"""

        if field_name not in TEXT_FIELDS:
            return None
        return self._get(field_name.upper())

    def set_text(self, field_name: str, value: str) -> None:
        """テキスト項目を上書きする。未対応の項目名は無視する。"""

        if field_name not in TEXT_FIELDS:
            return
        name = field_name.upper()
        if name in self.component:
            del self.component[name]
        self.component.add(name, value)

    def has_alarms(self) -> bool:
        return any(sub.name == _ALARM_COMPONENT for sub in self.component.subcomponents)

    def strip_alarms(self) -> None:
        """VALARM サブコンポーネントだけを取り除く。プロパティはそのまま残る。"""

        self.component.subcomponents = [
            sub for sub in self.component.subcomponents if sub.name != _ALARM_COMPONENT
        ]

    def dedup_key(self) -> tuple[date | None, date | None]:
        return (self.start, self.end)

    def _get(self, name: str) -> str | None:
        value = self.component.get(name)
        if value is None:
            return None
        # 同じプロパティが複数行あると icalendar はリストで返す。先頭だけを使う。
        if isinstance(value, list):
            if not value:
                return None
            value = value[0]
        return str(value)

    def _get_datetime(self, name: str) -> date | None:
        prop = self.component.get(name)
        if prop is None:
            return None
        return getattr(prop, "dt", None)


@dataclass(slots=True)
class SourceError:
    """失敗したソースの識別子と原因。"""

    identifier: str
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error)


@dataclass(slots=True)
class MergeResult:
    """1回のマージ呼び出しの結果。"""

    events: list[Event] = field(default_factory=list)
    errors: list[SourceError] = field(default_factory=list)
