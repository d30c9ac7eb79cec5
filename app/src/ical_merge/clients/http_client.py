"""httpx クライアントの共通設定。"""

from __future__ import annotations

import httpx

from ical_merge import __version__

DEFAULT_TIMEOUT = httpx.Timeout(30.0, connect=10.0)
USER_AGENT = f"ical-merge/{__version__}"


def create_async_client(
    *,
    timeout: httpx.Timeout | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """共通タイムアウト・User-Agent 付きの AsyncClient を生成する。"""

    return httpx.AsyncClient(
        timeout=timeout or DEFAULT_TIMEOUT,
        transport=transport,
        follow_redirects=True,
        headers={"User-Agent": USER_AGENT},
    )
