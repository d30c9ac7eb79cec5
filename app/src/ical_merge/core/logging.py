"""JSONロギングの共通ヘルパー。"""

from __future__ import annotations

import json
import logging
import traceback
from pathlib import Path
from typing import Any, Iterable

from ical_merge.core.models import SourceError

_LOGGER = logging.getLogger("ical_merge")


def configure_logging(level: str = "INFO") -> None:
    """CLI 起動時にルートロガーを設定する。"""

    logging.basicConfig(level=level.upper(), format="%(levelname)s: %(name)s: %(message)s")


def log_request(*, path: str, status: int, request_id: str, latency_ms: int) -> None:
    payload = {
        "level": "INFO",
        "path": path,
        "status": status,
        "request_id": request_id,
        "latency_ms": latency_ms,
    }
    _LOGGER.info(_dumps(payload))


def log_error(
    *,
    path: str,
    status: int,
    request_id: str,
    latency_ms: int,
    error: Any,
) -> None:
    payload = {
        "level": "ERROR",
        "path": path,
        "status": status,
        "request_id": request_id,
        "latency_ms": latency_ms,
        "error_json": _to_error_json(error),
        "traceback": traceback.format_exc(),
    }
    _LOGGER.error(_dumps(payload))


def log_source_errors(
    *,
    calendar: str,
    errors: Iterable[SourceError],
    request_id: str | None = None,
) -> None:
    """取得・解析に失敗したソースを1件ずつ記録する。配信自体は継続する。"""

    for source_error in errors:
        payload = {
            "level": "ERROR",
            "event": "source_failed",
            "calendar": calendar,
            "source": source_error.identifier,
            "error_type": type(source_error.error).__name__,
            "error": source_error.message,
            "request_id": request_id,
        }
        _LOGGER.error(_dumps(payload))


def log_config_reloaded(*, path: Path | None, generation: int, calendars: Iterable[str]) -> None:
    payload = {
        "level": "INFO",
        "event": "config_reloaded",
        "path": str(path) if path else None,
        "generation": generation,
        "calendars": sorted(calendars),
    }
    _LOGGER.info(_dumps(payload))


def log_config_reload_failed(*, path: Path | None, error: Any) -> None:
    payload = {
        "level": "ERROR",
        "event": "config_reload_failed",
        "path": str(path) if path else None,
        "error_json": _to_error_json(error),
        "detail": "直前の設定で稼働を継続します。",
    }
    _LOGGER.error(_dumps(payload))


def _dumps(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False)


def _to_error_json(error: Any) -> str:
    if isinstance(error, (dict, list)):
        return json.dumps(error, ensure_ascii=False)
    return json.dumps({"message": str(error)}, ensure_ascii=False)
