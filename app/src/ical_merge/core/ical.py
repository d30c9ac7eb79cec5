"""iCal テキストと Event の相互変換。"""

from __future__ import annotations

from typing import Iterable

from icalendar import Calendar

from ical_merge.core.errors import ParseError
from ical_merge.core.models import Event

PRODID = "-//ical-merge//EN"


def parse_calendar(text: str | bytes) -> list[Event]:
    """VCALENDAR テキストを解析し、トップレベルの VEVENT を Event にして返す。"""

    try:
        calendar = Calendar.from_ical(text)
    except (ValueError, IndexError, KeyError) as exc:
        raise ParseError(f"iCal の解析に失敗しました: {exc}") from exc

    if getattr(calendar, "name", None) != "VCALENDAR":
        raise ParseError("VCALENDAR ではない iCal データです。")

    return [Event(component) for component in calendar.subcomponents if component.name == "VEVENT"]


def serialize_events(events: Iterable[Event]) -> str:
    """イベント列を新しい VCALENDAR に詰めて iCal テキストにする。"""

    calendar = Calendar()
    calendar.add("prodid", PRODID)
    calendar.add("version", "2.0")
    for event in events:
        calendar.add_component(event.component)
    return calendar.to_ical().decode("utf-8")
