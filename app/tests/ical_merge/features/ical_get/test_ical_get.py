"""`/ical/{name}` エンドポイントのテスト。"""

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from ical_merge.app import create_app
from ical_merge.core.config_store import ConfigStore
from ical_merge.core.errors import ConfigError
from ical_merge.core.ical import parse_calendar
from ical_merge.core.settings import load_settings

FEED = "https://feeds.test"

CONFIG = {
    "calendars": {
        "combined-work": {
            "sources": [
                {
                    "url": f"{FEED}/work.ics",
                    "steps": [
                        {"type": "allow", "patterns": ["(?i)meeting"]},
                        {"type": "deny", "patterns": ["(?i)optional"], "fields": ["summary"]},
                        {"type": "replace", "pattern": "^Meeting:", "replacement": "[WORK]"},
                    ],
                },
                {"url": f"{FEED}/holidays.ics"},
            ]
        },
        "with-missing": {
            "sources": [
                {"url": f"{FEED}/holidays.ics"},
                {"url": f"{FEED}/missing.ics"},
            ]
        },
    }
}


@pytest.fixture
def store() -> ConfigStore:
    return ConfigStore.from_raw(CONFIG)


@pytest.fixture
def client(store, http_client, feed_routes, vevent, vcalendar) -> TestClient:
    feed_routes["/work.ics"] = (
        200,
        vcalendar(
            vevent("w1", "Meeting: Team standup", start="20240115T090000Z", end="20240115T091500Z"),
            vevent("w2", "Project review", description="Monthly meeting", start="20240116T140000Z", end="20240116T150000Z"),
            vevent("w3", "Optional meeting lunch", start="20240117T120000Z", end="20240117T130000Z"),
            vevent("w4", "Dentist", start="20240118T080000Z", end="20240118T090000Z"),
        ),
    )
    feed_routes["/holidays.ics"] = (
        200,
        vcalendar(
            vevent("h1", "Christmas Day", start="20241225T000000Z", end="20241226T000000Z"),
            vevent("h2", "Boxing Day", start="20241226T000000Z", end="20241227T000000Z"),
        ),
    )
    app = create_app(load_settings(), store=store, http_client=http_client)
    return TestClient(app)


def test_full_flow_fetch_filter_modify_merge_serve(client: TestClient) -> None:
    res = client.get("/ical/combined-work")

    assert res.status_code == 200
    assert res.headers["content-type"] == "text/calendar; charset=utf-8"
    summaries = [e.summary for e in parse_calendar(res.text)]
    assert summaries == ["[WORK] Team standup", "Project review", "Christmas Day", "Boxing Day"]


def test_unknown_calendar_returns_404(client: TestClient) -> None:
    res = client.get("/ical/nope")

    assert res.status_code == 404
    error = res.json()["detail"]["error"]
    assert error["code"] == "CALENDAR_NOT_FOUND"
    assert error["retryable"] is False


def test_partial_failure_still_serves(client: TestClient, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.ERROR, logger="ical_merge"):
        res = client.get("/ical/with-missing", headers={"X-Request-Id": "req-1"})

    assert res.status_code == 200
    assert [e.summary for e in parse_calendar(res.text)] == ["Christmas Day", "Boxing Day"]
    assert "source_failed" in caplog.text
    assert f"{FEED}/missing.ics" in caplog.text
    assert "req-1" in caplog.text


def test_reload_is_visible_to_next_request(client: TestClient, store: ConfigStore) -> None:
    store.reload({"calendars": {"holidays-only": {"sources": [{"url": f"{FEED}/holidays.ics"}]}}})

    assert client.get("/ical/holidays-only").status_code == 200
    assert client.get("/ical/combined-work").status_code == 404


def test_failed_reload_keeps_serving_previous_calendars(client: TestClient, store: ConfigStore) -> None:
    bad = {"calendars": {"combined-work": {"sources": [{"calendar": "combined-work"}]}}}
    with pytest.raises(ConfigError):
        store.reload(bad)

    res = client.get("/ical/combined-work")

    assert res.status_code == 200
    assert len(parse_calendar(res.text)) == 4
