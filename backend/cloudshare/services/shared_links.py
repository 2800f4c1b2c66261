from __future__ import annotations

import logging

from cloudshare.core.config import settings
from cloudshare.core.database import utcnow
from cloudshare.core.errors import FileAccessDeniedError, LinkNotFoundError, UnderlyingFileMissingError
from cloudshare.core.security import Identity
from cloudshare.models.shared_link import SharedLink
from cloudshare.monitoring.setup import report_link_created
from cloudshare.schemas.shared_link import ShareCreate
from cloudshare.services import streamer
from cloudshare.services.access_gate import AccessGate, evaluate
from cloudshare.services.files import FileRecord
from cloudshare.services.tokens import LinkIssuer

logger = logging.getLogger("cloudshare")


def _can_manage(identity: Identity | None, owner_id: int | None) -> bool:
    if owner_id is None:
        return True
    if identity is None:
        return False
    return identity.is_admin or identity.user_id == owner_id


class SharedLinkService:
    def __init__(self, registry, files, metadata_counts_access: bool | None = None, chunk_size: int | None = None) -> None:
        self.registry = registry
        self.files = files
        self.issuer = LinkIssuer(registry)
        self.gate = AccessGate(registry)
        if metadata_counts_access is None:
            metadata_counts_access = settings.SHARE_METADATA_COUNTS_ACCESS
        self.metadata_counts_access = metadata_counts_access
        self.chunk_size = chunk_size

    async def create_link(self, data: ShareCreate, identity: Identity | None = None) -> SharedLink:
        file = await self.files.get_file(data.file_id)
        if file is None:
            raise LinkNotFoundError("File not found")
        if not _can_manage(identity, file.user_id):
            raise FileAccessDeniedError()

        if data.reuse_existing and not data.password:
            existing = await self.registry.find_active_for_file(data.file_id)
            if existing is not None and not existing.is_password_protected and evaluate(existing, None, utcnow()).allowed:
                return existing

        link = await self.issuer.issue(
            file_id=data.file_id,
            user_id=identity.user_id if identity else None,
            password=data.password,
            expires_at=data.expires_at,
            max_access_count=data.max_access_count,
        )
        report_link_created()
        logger.info("Created share link %s for file %s", link.id, link.file_id)
        return link

    async def get_link_metadata(self, token: str, password: str | None = None) -> tuple[SharedLink, FileRecord]:
        link = await self.gate.check(token, password)
        file = await self._resolve_file(link)
        if self.metadata_counts_access:
            link = await self.gate.commit(token, password)
        return link, file

    async def access_link(self, token: str, password: str | None = None) -> SharedLink:
        await self.gate.check(token, password)
        return await self.gate.commit(token, password)

    async def download_link(self, token: str, password: str | None = None, range_header: str | None = None) -> streamer.StreamResponse:
        link = await self.gate.check(token, password)
        file = await self._resolve_file(link)
        # a 416 or an unreadable file is reported before the use is consumed
        response = await streamer.serve(file, range_header, self.chunk_size)
        try:
            await self.gate.commit(token, password)
        except BaseException:
            await response.source.close()
            raise
        return response

    async def revoke_link(self, token: str, identity: Identity | None = None) -> None:
        link = await self.registry.find_by_token(token)
        if link is None or link.revoked:
            return
        if not _can_manage(identity, link.user_id):
            raise FileAccessDeniedError()
        await self.registry.revoke(token)
        logger.info("Revoked share link %s", link.id)

    async def delete_link(self, token: str, identity: Identity | None = None) -> None:
        link = await self.registry.find_by_token(token)
        if link is None:
            return
        if not _can_manage(identity, link.user_id):
            raise FileAccessDeniedError()
        await self.registry.delete(token)
        logger.info("Deleted share link %s", link.id)

    async def delete_links_for_file(self, file_id: int) -> int:
        removed = await self.registry.delete_all_for_file(file_id)
        if removed:
            logger.info("Deleted %s share links for file %s", removed, file_id)
        return removed

    async def _resolve_file(self, link: SharedLink) -> FileRecord:
        file = await self.files.get_file(link.file_id)
        if file is None:
            logger.warning("Share link %s points at missing file %s", link.id, link.file_id)
            raise UnderlyingFileMissingError(link.file_id)
        return file
