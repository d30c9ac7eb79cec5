"""マージ済み iCal 配信エンドポイント。"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ical_merge.clients.feed_client import FeedFetcher
from ical_merge.core.config_store import ConfigStore
from ical_merge.core.errors import CalendarNotFoundError
from ical_merge.features.ical_get.schemas_ical_get import (
    ICAL_MEDIA_TYPE,
    ErrorModel,
    ErrorResponse,
)
from ical_merge.features.ical_get.usecase_ical_get import build_calendar_feed

router = APIRouter(prefix="/ical", tags=["ical"])


async def get_store(request: Request) -> ConfigStore:
    return request.app.state.config_store  # type: ignore[attr-defined]


async def get_fetcher(request: Request) -> FeedFetcher:
    return request.app.state.fetcher  # type: ignore[attr-defined]


@router.get(
    "/{name}",
    response_class=Response,
    responses={
        200: {"content": {"text/calendar": {}}},
        404: {"model": ErrorResponse},
    },
)
async def get_calendar(
    name: str,
    request: Request,
    store: ConfigStore = Depends(get_store),
    fetcher: FeedFetcher = Depends(get_fetcher),
) -> Response:
    request_id = getattr(request.state, "request_id", None)
    try:
        body = await build_calendar_feed(
            name,
            store=store,
            fetcher=fetcher,
            request_id=request_id,
        )
    except CalendarNotFoundError as exc:
        error = ErrorModel(code="CALENDAR_NOT_FOUND", message=str(exc), retryable=False)
        raise HTTPException(status_code=404, detail={"error": error.model_dump()}) from exc
    return Response(content=body, media_type=ICAL_MEDIA_TYPE)
