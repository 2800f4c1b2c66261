"""Persistence for shared links.

The registry stores and mutates records but never decides whether a link
may be used; that policy lives in :mod:`cloudshare.services.access_gate`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cloudshare.core.database import utcnow
from cloudshare.models.shared_link import SharedLink


class LinkRegistry(Protocol):
    async def create(self, link: SharedLink) -> SharedLink: ...

    async def find_by_token(self, token: str) -> SharedLink | None: ...

    async def find_active_for_file(self, file_id: int) -> SharedLink | None: ...

    async def increment_access(self, token: str, now: datetime | None = None) -> SharedLink | None:
        """Consume one use, or return None if the link can no longer be used."""
        ...

    async def revoke(self, token: str) -> None: ...

    async def delete(self, token: str) -> None: ...

    async def delete_all_for_file(self, file_id: int) -> int: ...


class SqlLinkRegistry:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, link: SharedLink) -> SharedLink:
        async with self._session_factory() as session:
            session.add(link)
            await session.commit()
            await session.refresh(link)
            return link

    async def find_by_token(self, token: str) -> SharedLink | None:
        async with self._session_factory() as session:
            res = await session.execute(select(SharedLink).where(SharedLink.token == token))
            return res.scalars().first()

    async def find_active_for_file(self, file_id: int) -> SharedLink | None:
        async with self._session_factory() as session:
            res = await session.execute(
                select(SharedLink)
                .where(SharedLink.file_id == file_id, SharedLink.revoked == False)  # noqa: E712
                .order_by(SharedLink.created_at.desc(), SharedLink.id.desc())
                .limit(1)
            )
            return res.scalars().first()

    async def increment_access(self, token: str, now: datetime | None = None) -> SharedLink | None:
        now = now or utcnow()
        # the guard and the increment are one statement so racing requests
        # cannot both pass the max_access_count check
        stmt = (
            update(SharedLink)
            .where(
                SharedLink.token == token,
                SharedLink.revoked == False,  # noqa: E712
                or_(
                    SharedLink.max_access_count.is_(None),
                    SharedLink.access_count < SharedLink.max_access_count,
                ),
                or_(SharedLink.expires_at.is_(None), SharedLink.expires_at > now),
            )
            .values(access_count=SharedLink.access_count + 1, last_accessed=now)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            if result.rowcount != 1:
                await session.rollback()
                return None
            res = await session.execute(select(SharedLink).where(SharedLink.token == token))
            link = res.scalars().first()
            await session.commit()
            return link

    async def revoke(self, token: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(SharedLink)
                .where(SharedLink.token == token)
                .values(revoked=True)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def delete(self, token: str) -> None:
        async with self._session_factory() as session:
            await session.execute(
                delete(SharedLink)
                .where(SharedLink.token == token)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def delete_all_for_file(self, file_id: int) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(SharedLink)
                .where(SharedLink.file_id == file_id)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount or 0
