"""FastAPI アプリケーションの組み立てを担当するモジュール。"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

import httpx
from fastapi import FastAPI

from ical_merge import __version__
from ical_merge.clients.feed_client import FeedFetcher
from ical_merge.clients.http_client import create_async_client
from ical_merge.core.config_store import ConfigStore
from ical_merge.core.middleware import request_id_middleware
from ical_merge.core.settings import Settings, load_settings
from ical_merge.core.watcher import ConfigWatcher
from ical_merge.features.ical_get.router_ical_get import router as ical_router


def create_app(
    settings: Settings | None = None,
    *,
    store: ConfigStore | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """設定ストアと共通ミドルウェアを組み込んだ FastAPI アプリを返す。

    `store` を省略した場合は設定ファイルを読み込む。不正な設定では
    ConfigError を送出し、起動させない。
    """

    settings = settings or load_settings()
    if store is None:
        store = ConfigStore.from_file(settings.config_path, overrides=settings.config_overrides)

    owns_client = http_client is None
    client = http_client or create_async_client()
    fetcher = FeedFetcher(client, timeout=settings.fetch_timeout_seconds)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        watcher: ConfigWatcher | None = None
        if settings.watch_config and store.source_path is not None:
            watcher = ConfigWatcher(store, poll_interval=settings.watch_interval_seconds)
            watcher.start()
        app.state.watcher = watcher  # type: ignore[attr-defined]
        try:
            yield
        finally:
            if watcher is not None:
                watcher.stop()
            if owns_client:
                await client.aclose()

    app = FastAPI(title="ical-merge", version=__version__, lifespan=lifespan)
    app.state.settings = settings  # type: ignore[attr-defined]
    app.state.config_store = store  # type: ignore[attr-defined]
    app.state.fetcher = fetcher  # type: ignore[attr-defined]
    app.middleware("http")(request_id_middleware)

    @app.get("/healthz", tags=["health"])
    def healthz() -> dict[str, str | int]:
        snapshot = store.current()
        return {
            "status": "ok",
            "env": settings.app_env,
            "calendars": len(snapshot.calendars),
            "generation": snapshot.generation,
        }

    app.include_router(ical_router)

    return app
