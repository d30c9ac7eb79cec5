"""マージ済みカレンダー配信ユースケース。"""

from __future__ import annotations

from ical_merge.core.config_store import ConfigStore
from ical_merge.core.ical import serialize_events
from ical_merge.core.logging import log_source_errors
from ical_merge.core.merge import Fetcher, merge_calendar


async def build_calendar_feed(
    name: str,
    *,
    store: ConfigStore,
    fetcher: Fetcher,
    request_id: str | None = None,
) -> str:
    """カレンダー `name` をマージして iCal テキストを返す。

    リクエスト開始時点のスナップショットを最後まで使う。一部ソースの失敗は
    ログに残すだけで、成功したソースのイベントは配信する。

    Raises:
        CalendarNotFoundError: 現在のスナップショットに `name` がない場合
    """

    snapshot = store.current()
    result = await merge_calendar(name, snapshot, fetcher)
    if result.errors:
        log_source_errors(calendar=name, errors=result.errors, request_id=request_id)
    return serialize_events(result.events)
