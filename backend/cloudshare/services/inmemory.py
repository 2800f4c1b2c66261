"""Process-local registry with the same contract as the SQL one.

Used by tests and for running the API without a database. Records are
copied on the way in and out so callers cannot mutate stored state.
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from cloudshare.core.database import utcnow
from cloudshare.models.shared_link import SharedLink

_FIELDS = (
    "id",
    "file_id",
    "user_id",
    "token",
    "password_hash",
    "expires_at",
    "max_access_count",
    "access_count",
    "revoked",
    "created_at",
    "last_accessed",
)


def _clone(link: SharedLink) -> SharedLink:
    return SharedLink(**{name: copy.copy(getattr(link, name)) for name in _FIELDS})


class InMemoryLinkRegistry:
    def __init__(self) -> None:
        self._links: dict[str, SharedLink] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def create(self, link: SharedLink) -> SharedLink:
        async with self._lock:
            if link.token in self._links:
                raise IntegrityError("INSERT INTO shared_links", {"token": link.token}, Exception("UNIQUE constraint failed"))
            stored = _clone(link)
            stored.id = next(self._ids)
            stored.access_count = stored.access_count or 0
            stored.revoked = bool(stored.revoked)
            stored.created_at = stored.created_at or utcnow()
            self._links[stored.token] = stored
            return _clone(stored)

    async def find_by_token(self, token: str) -> SharedLink | None:
        link = self._links.get(token)
        return _clone(link) if link else None

    async def find_active_for_file(self, file_id: int) -> SharedLink | None:
        candidates = [link for link in self._links.values() if link.file_id == file_id and not link.revoked]
        if not candidates:
            return None
        return _clone(max(candidates, key=lambda link: (link.created_at, link.id)))

    async def increment_access(self, token: str, now: datetime | None = None) -> SharedLink | None:
        now = now or utcnow()
        async with self._lock:
            link = self._links.get(token)
            if link is None or link.revoked:
                return None
            if link.max_access_count is not None and link.access_count >= link.max_access_count:
                return None
            if link.expires_at is not None and link.expires_at <= now:
                return None
            link.access_count += 1
            link.last_accessed = now
            return _clone(link)

    async def revoke(self, token: str) -> None:
        async with self._lock:
            link = self._links.get(token)
            if link is not None:
                link.revoked = True

    async def delete(self, token: str) -> None:
        async with self._lock:
            self._links.pop(token, None)

    async def delete_all_for_file(self, file_id: int) -> int:
        async with self._lock:
            doomed = [token for token, link in self._links.items() if link.file_id == file_id]
            for token in doomed:
                del self._links[token]
            return len(doomed)
