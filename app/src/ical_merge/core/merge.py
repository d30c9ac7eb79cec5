"""ソース解決とマージの本体。

1カレンダー分のソースを並行に解決し、宣言順に連結してから
カレンダー単位のステップを適用、(開始, 終了) をキーに重複を除く。
ソース単位の失敗は SourceError として集め、兄弟ソースは止めない。
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Protocol

from ical_merge.core.errors import CalendarNotFoundError, MergeDepthError
from ical_merge.core.ical import parse_calendar
from ical_merge.core.models import Event, MergeResult, SourceError
from ical_merge.core.snapshot import (
    CalendarRefSource,
    ConfigurationSnapshot,
    SourceDefinition,
    UrlSource,
)
from ical_merge.core.steps import process_events


class Fetcher(Protocol):
    async def fetch(self, url: str) -> str: ...


async def merge_calendar(
    name: str,
    snapshot: ConfigurationSnapshot,
    fetcher: Fetcher,
    *,
    depth: int = 0,
) -> MergeResult:
    """カレンダー `name` を同一スナップショット上でマージする。

    Raises:
        CalendarNotFoundError: `name` がスナップショットに存在しない場合
        MergeDepthError: 参照の深さが設定カレンダー数を超えた場合
    """

    definition = snapshot.get(name)
    if definition is None:
        raise CalendarNotFoundError(name)
    # 循環はロード時に排除済み。ここは検証漏れに対する上限のみ。
    if depth > len(snapshot.calendars):
        raise MergeDepthError(f"カレンダー '{name}' の参照が深すぎます (depth={depth})。")

    outcomes = await asyncio.gather(
        *(resolve_source(source, snapshot, fetcher, depth=depth) for source in definition.sources),
        return_exceptions=True,
    )

    events: list[Event] = []
    errors: list[SourceError] = []
    # gather は引数順で結果を返すので、完了順ではなく宣言順に連結される
    for source, outcome in zip(definition.sources, outcomes):
        if isinstance(outcome, BaseException):
            if not isinstance(outcome, Exception):
                raise outcome
            errors.append(SourceError(identifier=source.identifier, error=outcome))
            continue
        events.extend(outcome.events)
        errors.extend(outcome.errors)

    events = process_events(events, definition.steps)
    return MergeResult(events=deduplicate_events(events), errors=errors)


async def resolve_source(
    source: SourceDefinition,
    snapshot: ConfigurationSnapshot,
    fetcher: Fetcher,
    *,
    depth: int = 0,
) -> MergeResult:
    """1ソースをイベント列に解決し、ソース自身のステップを適用する。

    URL ソースの取得・解析エラーはそのまま送出する（呼び出し側で識別子を付ける）。
    カレンダー参照では参照先の部分失敗を識別子付きで引き継ぐ。
    """

    if isinstance(source, UrlSource):
        text = await fetcher.fetch(source.url)
        events = parse_calendar(text)
        return MergeResult(events=process_events(events, source.steps))

    if isinstance(source, CalendarRefSource):
        nested = await merge_calendar(source.calendar_name, snapshot, fetcher, depth=depth + 1)
        errors = [
            SourceError(identifier=f"{source.identifier} -> {inner.identifier}", error=inner.error)
            for inner in nested.errors
        ]
        return MergeResult(events=process_events(nested.events, source.steps), errors=errors)

    raise TypeError(f"未知のソースです: {source!r}")


def deduplicate_events(events: Iterable[Event]) -> list[Event]:
    """(開始, 終了) が同じイベントは最初の1件だけを残す。

    内容は比較しない。開始・終了を持たないイベント同士も (None, None) で
    衝突するため、カレンダーごとに1件しか残らない。
    """

    seen: set[tuple[object, object]] = set()
    unique: list[Event] = []
    for event in events:
        key = event.dedup_key()
        if key in seen:
            continue
        seen.add(key)
        unique.append(event)
    return unique
