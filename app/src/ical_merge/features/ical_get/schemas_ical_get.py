"""`/ical/{name}` のレスポンススキーマ。"""

from __future__ import annotations

from ical_merge.shared.schemas.errors import ErrorModel, ErrorResponse

ICAL_MEDIA_TYPE = "text/calendar; charset=utf-8"

__all__ = ["ICAL_MEDIA_TYPE", "ErrorModel", "ErrorResponse"]
