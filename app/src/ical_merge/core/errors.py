"""アプリ全体で使う例外クラス群。"""

from __future__ import annotations


class IcalMergeError(RuntimeError):
    """ical-merge の基底例外。"""


class ConfigError(IcalMergeError):
    """設定の構造・正規表現・参照・循環などの不備。ロード/リロード単位で失敗させる。"""


class RegexError(ConfigError):
    """ステップの正規表現がコンパイルできない。設定ロード時にのみ発生する。"""


class FetchError(IcalMergeError):
    """リモートフィード取得の失敗（通信エラー・タイムアウト・非 2xx）。"""

    def __init__(self, url: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ParseError(IcalMergeError):
    """iCal テキストの解析失敗。"""


class CalendarNotFoundError(IcalMergeError):
    """要求されたカレンダー名がスナップショットに存在しない。"""

    def __init__(self, name: str) -> None:
        super().__init__(f"カレンダー '{name}' が見つかりません。")
        self.name = name


class MergeDepthError(IcalMergeError):
    """カレンダー参照の再帰が上限を超えた。"""
