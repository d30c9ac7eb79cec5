"""リモート iCal フィードの取得クライアント。"""

from __future__ import annotations

import asyncio

import httpx

from ical_merge.core.errors import FetchError

DEFAULT_FETCH_TIMEOUT_SECONDS = 30.0

# カレンダー専用スキームを対応する HTTP スキームへ読み替える
_SCHEME_REWRITES = (
    ("webcals://", "https://"),
    ("webcal://", "http://"),
)


def normalize_feed_url(url: str) -> str:
    """`webcal://` / `webcals://` を `http://` / `https://` に書き換える。"""

    lowered = url.lower()
    for prefix, replacement in _SCHEME_REWRITES:
        if lowered.startswith(prefix):
            return replacement + url[len(prefix) :]
    return url


class FeedFetcher:
    """共有 AsyncClient を使ってフィード本文を取得する。

    1回の取得全体に `timeout` 秒の上限をかけ、応答しないソースが
    マージ全体を止めないようにする。
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self._client = client
        self._timeout = timeout

    async def fetch(self, url: str) -> str:
        """フィード本文を返す。失敗時は FetchError。"""

        target = normalize_feed_url(url)
        try:
            response = await asyncio.wait_for(self._client.get(target), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise FetchError(url, f"フィード取得がタイムアウトしました ({self._timeout}s)") from exc
        except httpx.HTTPError as exc:
            raise FetchError(url, f"フィード取得に失敗しました: {exc}") from exc

        if not response.is_success:
            raise FetchError(
                url,
                f"フィード取得に失敗しました (Status: {response.status_code})",
                status_code=response.status_code,
            )
        return response.text
