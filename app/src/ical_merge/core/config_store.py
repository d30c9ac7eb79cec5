"""ホットリロード可能な設定ストア。

公開中のスナップショットへの参照を1つだけ持ち、リロード時は新しい
スナップショットを別途検証してから参照を差し替える。読み手はロックを
取らず、リクエスト開始時に取得したスナップショットを最後まで使う。
"""

from __future__ import annotations

import dataclasses
import hashlib
import threading
from pathlib import Path
from typing import Any, Mapping

from ical_merge.core.errors import ConfigError
from ical_merge.core.logging import log_config_reload_failed, log_config_reloaded
from ical_merge.core.snapshot import (
    ConfigurationSnapshot,
    load_config,
    load_config_text,
    read_config_file,
)


class ConfigStore:
    """現在の ConfigurationSnapshot を保持する。"""

    def __init__(
        self,
        snapshot: ConfigurationSnapshot,
        *,
        source_path: Path | None = None,
        overrides: Mapping[str, Any] | None = None,
        source_digest: str | None = None,
    ) -> None:
        self._publish_lock = threading.Lock()
        self._generation = 1
        self._snapshot = dataclasses.replace(snapshot, generation=self._generation)
        self._overrides = dict(overrides or {})
        self._source_digest = source_digest
        self.source_path = source_path

    @classmethod
    def from_raw(
        cls,
        raw: Mapping[str, Any],
        *,
        overrides: Mapping[str, Any] | None = None,
    ) -> ConfigStore:
        return cls(load_config(raw, overrides), overrides=overrides)

    @classmethod
    def from_file(
        cls,
        path: Path,
        *,
        overrides: Mapping[str, Any] | None = None,
    ) -> ConfigStore:
        """設定ファイルから初期スナップショットを読み込む。失敗時は ConfigError。"""

        text = read_config_file(path)
        snapshot = load_config_text(text, overrides)
        return cls(snapshot, source_path=path, overrides=overrides, source_digest=_digest(text))

    @property
    def generation(self) -> int:
        return self._generation

    def current(self) -> ConfigurationSnapshot:
        return self._snapshot

    def reload(self, raw: Mapping[str, Any]) -> ConfigurationSnapshot:
        """生設定から新しいスナップショットを作って公開する。

        検証に失敗した場合は ConfigError を送出し、公開中のスナップショットは
        変更しない。ファイルと内容がずれるため、次回の reload_from_file は
        差分の有無にかかわらずファイルを公開し直す。
        """

        snapshot = self._publish(load_config(raw, self._overrides))
        self._source_digest = None
        return snapshot

    def reload_from_file(self) -> bool:
        """設定ファイルを読み直す。公開した場合 True。

        内容が変わっていなければ何もしない。失敗はログに残して握りつぶし、
        直前の設定で稼働を継続する。
        """

        if self.source_path is None:
            return False
        try:
            text = read_config_file(self.source_path)
            digest = _digest(text)
            if digest == self._source_digest:
                return False
            snapshot = self._publish(load_config_text(text, self._overrides))
        except ConfigError as exc:
            log_config_reload_failed(path=self.source_path, error=exc)
            return False

        self._source_digest = digest
        log_config_reloaded(
            path=self.source_path,
            generation=snapshot.generation,
            calendars=snapshot.calendars.keys(),
        )
        return True

    def _publish(self, snapshot: ConfigurationSnapshot) -> ConfigurationSnapshot:
        with self._publish_lock:
            self._generation += 1
            published = dataclasses.replace(snapshot, generation=self._generation)
            self._snapshot = published
        return published


def _digest(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
