from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ShareCreate(BaseModel):
    file_id: int
    password: str | None = None
    expires_at: datetime | None = None
    max_access_count: int | None = Field(None, ge=1)
    reuse_existing: bool = False


class ShareResponse(BaseModel):
    token: str
    url: str
    expires_at: datetime | None = None
    max_access_count: int | None = None


class SharedFileInfo(BaseModel):
    id: int
    name: str
    mime_type: str
    size: int


class SharedLinkInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    token: str
    expires_at: datetime | None = None
    max_access_count: int | None = None
    access_count: int
    revoked: bool


class SharedLinkMetadata(BaseModel):
    file: SharedFileInfo
    link: SharedLinkInfo


class AccessResponse(BaseModel):
    link: SharedLinkInfo


class RevokeResponse(BaseModel):
    success: bool = True
