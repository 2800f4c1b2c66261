from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cloudshare.models.file import File


@dataclass(frozen=True)
class FileRecord:
    id: int
    path: str | None
    mime_type: str
    size: int
    original_filename: str
    user_id: int | None = None
    bucket: str | None = None
    object_name: str | None = None

    @property
    def in_object_storage(self) -> bool:
        return bool(self.bucket and self.object_name)


class SqlFileCatalog:
    """Read-only view of the file metadata owned by the file service."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_file(self, file_id: int) -> FileRecord | None:
        async with self._session_factory() as session:
            res = await session.execute(select(File).where(File.id == file_id))
            row = res.scalars().first()
        if row is None:
            return None
        return FileRecord(
            id=row.id,
            path=row.path,
            mime_type=row.mime_type or "application/octet-stream",
            size=row.size or 0,
            original_filename=row.original_filename or row.filename,
            user_id=row.user_id,
            bucket=row.bucket,
            object_name=row.object_name,
        )
