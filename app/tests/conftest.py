from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, AsyncIterator, Callable

import httpx
import pytest
import pytest_asyncio

from ical_merge.core import settings as core_settings

FEED_BASE = "https://feeds.test"


@pytest.fixture(autouse=True)
def basic_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """環境変数由来の設定をテストごとに初期化する。"""

    for name in list(os.environ):
        if name.startswith("ICAL_MERGE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.setenv("ICAL_MERGE_WATCH", "0")
    core_settings.load_settings.cache_clear()


@pytest.fixture
def vevent() -> Callable[..., str]:
    """VEVENT ブロックを組み立てる。"""

    def _build(
        uid: str,
        summary: str | None = None,
        *,
        start: str | None = "20240115T100000Z",
        end: str | None = "20240115T110000Z",
        description: str | None = None,
        location: str | None = None,
        alarm: bool = False,
    ) -> str:
        lines = ["BEGIN:VEVENT", f"UID:{uid}", "DTSTAMP:20240101T000000Z"]
        if start:
            lines.append(f"DTSTART:{start}")
        if end:
            lines.append(f"DTEND:{end}")
        if summary is not None:
            lines.append(f"SUMMARY:{summary}")
        if description is not None:
            lines.append(f"DESCRIPTION:{description}")
        if location is not None:
            lines.append(f"LOCATION:{location}")
        if alarm:
            lines += [
                "BEGIN:VALARM",
                "ACTION:DISPLAY",
                "DESCRIPTION:Reminder",
                "TRIGGER:-PT15M",
                "END:VALARM",
            ]
        lines.append("END:VEVENT")
        return "\r\n".join(lines)

    return _build


@pytest.fixture
def vcalendar() -> Callable[..., str]:
    def _build(*events: str) -> str:
        lines = ["BEGIN:VCALENDAR", "VERSION:2.0", "PRODID:-//Test//Test//EN", *events, "END:VCALENDAR"]
        return "\r\n".join(lines) + "\r\n"

    return _build


@pytest.fixture
def feed_routes() -> dict[str, Any]:
    """パス → (ステータス, 本文) の対応。本文に callable を渡すと遅延応答などに使える。"""

    return {}


@pytest.fixture
def requested_urls() -> list[str]:
    return []


@pytest_asyncio.fixture
async def http_client(feed_routes: dict[str, Any], requested_urls: list[str]) -> AsyncIterator[httpx.AsyncClient]:
    """`feed_routes` に従って応答する MockTransport 付き AsyncClient。"""

    async def handler(request: httpx.Request) -> httpx.Response:
        requested_urls.append(str(request.url))
        route = feed_routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return await route(request)
        status, body = route
        return httpx.Response(status, text=body)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=FEED_BASE) as client:
        yield client


@pytest.fixture
def write_config(tmp_path: Path) -> Callable[[dict[str, Any]], Path]:
    def _write(config: dict[str, Any]) -> Path:
        path = tmp_path / "config.json"
        path.write_text(json.dumps(config), encoding="utf-8")
        return path

    return _write
