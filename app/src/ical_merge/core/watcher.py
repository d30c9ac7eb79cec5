"""設定ファイルの変更を watchdog で検知し、リロードを試行する。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers.polling import PollingObserver

from ical_merge.core.config_store import ConfigStore

_LOGGER = logging.getLogger("ical_merge")

_RELOAD_EVENT_TYPES = {"created", "modified", "moved"}

DEFAULT_POLL_INTERVAL_SECONDS = 2.0


class ConfigFileEventHandler(FileSystemEventHandler):
    """対象の設定ファイルに関するイベントだけを拾ってコールバックする。"""

    def __init__(self, config_path: Path, on_change: Callable[[], object]) -> None:
        super().__init__()
        self._config_path = config_path.resolve()
        self._on_change = on_change

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _RELOAD_EVENT_TYPES:
            return
        # エディタの置き換え保存では dest_path 側に対象ファイルが来る
        candidates = [event.src_path, getattr(event, "dest_path", "")]
        if any(self._is_config(path) for path in candidates):
            _LOGGER.debug("設定ファイルの変更を検知しました: %s", event)
            self._on_change()

    def _is_config(self, raw_path: str | bytes) -> bool:
        if not raw_path:
            return False
        if isinstance(raw_path, bytes):
            raw_path = raw_path.decode()
        return Path(raw_path).resolve() == self._config_path


class ConfigWatcher:
    """ConfigStore の設定ファイルを監視するバックグラウンドスレッド。

    inotify はコンテナへのバインドマウント越しのホスト側編集を通知しないため、
    `poll_interval` 秒ごとに stat を比較するポーリング方式で監視する。
    内容が変わっていない通知は ConfigStore 側のダイジェスト比較で捨てられる。
    """

    def __init__(self, store: ConfigStore, *, poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS) -> None:
        if store.source_path is None:
            raise ValueError("ファイル由来でない ConfigStore は監視できません。")
        self._store = store
        self._config_path = store.source_path
        self._poll_interval = poll_interval
        self._observer: PollingObserver | None = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            return
        handler = ConfigFileEventHandler(self._config_path, self._store.reload_from_file)
        observer = PollingObserver(timeout=self._poll_interval)
        # 置き換え保存に追従するため親ディレクトリを非再帰で監視する
        observer.schedule(handler, str(self._config_path.resolve().parent), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer
        _LOGGER.info("設定ファイルの監視を開始しました: %s", self._config_path)

    def stop(self) -> None:
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        observer.stop()
        observer.join(timeout=5)
