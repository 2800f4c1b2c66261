from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status

from cloudshare.core.security import Identity, get_optional_identity
from cloudshare.dependencies import get_link_service
from cloudshare.schemas.shared_link import (
    AccessResponse,
    RevokeResponse,
    ShareCreate,
    SharedFileInfo,
    SharedLinkInfo,
    SharedLinkMetadata,
    ShareResponse,
)
from cloudshare.services.shared_links import SharedLinkService
from cloudshare.utils.urls import shared_link_url

router = APIRouter(tags=["Share Links"])


@router.post("/share", response_model=ShareResponse, status_code=status.HTTP_201_CREATED)
async def create_share_link(
    request: Request,
    body: ShareCreate,
    identity: Identity | None = Depends(get_optional_identity),
    service: SharedLinkService = Depends(get_link_service),
):
    link = await service.create_link(body, identity)
    return ShareResponse(
        token=link.token,
        url=shared_link_url(request, link.token),
        expires_at=link.expires_at,
        max_access_count=link.max_access_count,
    )


@router.get("/shared/{token}", response_model=SharedLinkMetadata)
async def get_shared_link(
    token: str,
    password: str | None = Query(None),
    service: SharedLinkService = Depends(get_link_service),
):
    """Public file attributes and usage counters; the storage path is never exposed."""
    link, file = await service.get_link_metadata(token, password)
    return SharedLinkMetadata(
        file=SharedFileInfo(id=file.id, name=file.original_filename, mime_type=file.mime_type, size=file.size),
        link=SharedLinkInfo.model_validate(link),
    )


@router.post("/shared/{token}/access", response_model=AccessResponse)
async def access_shared_link(
    token: str,
    password: str | None = Query(None),
    service: SharedLinkService = Depends(get_link_service),
):
    link = await service.access_link(token, password)
    return AccessResponse(link=SharedLinkInfo.model_validate(link))


@router.delete("/shared/{token}", response_model=RevokeResponse)
async def revoke_shared_link(
    token: str,
    purge: bool = Query(False, description="Delete the record instead of revoking it"),
    identity: Identity | None = Depends(get_optional_identity),
    service: SharedLinkService = Depends(get_link_service),
):
    if purge:
        await service.delete_link(token, identity)
    else:
        await service.revoke_link(token, identity)
    return RevokeResponse()
