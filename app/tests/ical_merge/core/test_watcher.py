"""設定ファイル監視のテスト。"""

from __future__ import annotations

import json
import time
from pathlib import Path

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)
from watchdog.observers.polling import PollingObserver

from ical_merge.core.config_store import ConfigStore
from ical_merge.core.watcher import DEFAULT_POLL_INTERVAL_SECONDS, ConfigFileEventHandler, ConfigWatcher

CONFIG = {"calendars": {"a": {"sources": [{"url": "https://example.com/a.ics"}]}}}


@pytest.fixture
def calls() -> list[int]:
    return []


@pytest.fixture
def handler(tmp_path: Path, calls: list[int]) -> ConfigFileEventHandler:
    return ConfigFileEventHandler(tmp_path / "config.json", lambda: calls.append(1))


class TestConfigFileEventHandler:
    def test_modified_config_triggers(self, handler, calls, tmp_path: Path) -> None:
        handler.on_any_event(FileModifiedEvent(str(tmp_path / "config.json")))

        assert calls == [1]

    def test_created_config_triggers(self, handler, calls, tmp_path: Path) -> None:
        handler.on_any_event(FileCreatedEvent(str(tmp_path / "config.json")))

        assert calls == [1]

    def test_atomic_replace_triggers(self, handler, calls, tmp_path: Path) -> None:
        """エディタの一時ファイル → 本体へのリネームを拾う。"""

        handler.on_any_event(FileMovedEvent(str(tmp_path / ".config.json.swp"), str(tmp_path / "config.json")))

        assert calls == [1]

    def test_other_files_are_ignored(self, handler, calls, tmp_path: Path) -> None:
        handler.on_any_event(FileModifiedEvent(str(tmp_path / "other.json")))

        assert calls == []

    def test_directory_events_are_ignored(self, handler, calls, tmp_path: Path) -> None:
        handler.on_any_event(DirModifiedEvent(str(tmp_path)))

        assert calls == []

    def test_deletion_is_ignored(self, handler, calls, tmp_path: Path) -> None:
        handler.on_any_event(FileDeletedEvent(str(tmp_path / "config.json")))

        assert calls == []


class TestConfigWatcher:
    def test_store_without_file_is_rejected(self) -> None:
        with pytest.raises(ValueError):
            ConfigWatcher(ConfigStore.from_raw(CONFIG))

    def test_start_and_stop(self, write_config) -> None:
        watcher = ConfigWatcher(ConfigStore.from_file(write_config(CONFIG)))

        watcher.start()
        assert watcher.is_running
        # バインドマウント越しの編集も拾えるよう stat のポーリングで監視する
        assert isinstance(watcher._observer, PollingObserver)
        assert watcher._observer.timeout == DEFAULT_POLL_INTERVAL_SECONDS
        watcher.stop()

        assert not watcher.is_running

    def test_stop_without_start_is_noop(self, write_config) -> None:
        watcher = ConfigWatcher(ConfigStore.from_file(write_config(CONFIG)))

        watcher.stop()

        assert not watcher.is_running

    def test_file_change_is_picked_up_by_polling(self, write_config) -> None:
        path = write_config(CONFIG)
        store = ConfigStore.from_file(path)
        watcher = ConfigWatcher(store, poll_interval=0.1)
        watcher.start()
        try:
            updated = {"calendars": {**CONFIG["calendars"], "b": {"sources": [{"calendar": "a"}]}}}
            path.write_text(json.dumps(updated), encoding="utf-8")

            deadline = time.monotonic() + 5
            while store.generation == 1 and time.monotonic() < deadline:
                time.sleep(0.05)
        finally:
            watcher.stop()

        assert set(store.current().calendars) == {"a", "b"}
