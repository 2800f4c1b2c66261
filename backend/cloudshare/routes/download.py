from __future__ import annotations

from typing import AsyncIterator

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from cloudshare.dependencies import get_link_service
from cloudshare.monitoring.setup import report_bytes_served
from cloudshare.services.shared_links import SharedLinkService
from cloudshare.services.streamer import StreamResponse

router = APIRouter(tags=["Download"])


async def _iter_stream(stream: StreamResponse) -> AsyncIterator[bytes]:
    try:
        async for chunk in stream.source.iter_chunks():
            yield chunk
    finally:
        report_bytes_served(stream.source.bytes_sent)


@router.get("/shared/{token}/download")
async def download_shared_file(
    token: str,
    password: str | None = Query(None),
    range_header: str | None = Header(None, alias="Range"),
    service: SharedLinkService = Depends(get_link_service),
):
    stream = await service.download_link(token, password, range_header)

    return StreamingResponse(
        _iter_stream(stream),
        status_code=stream.status,
        headers=stream.headers,
        media_type=stream.media_type,
        background=BackgroundTask(stream.source.close),
    )
