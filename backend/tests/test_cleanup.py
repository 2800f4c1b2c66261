from datetime import timedelta

import pytest
from sqlalchemy import delete

from cloudshare.core.database import utcnow
from cloudshare.models.file import File
from cloudshare.tasks.cleanup import find_orphaned_file_ids, sweep_orphaned_links

pytestmark = pytest.mark.anyio


async def test_sweep_removes_only_links_of_deleted_files(service, session_factory, make_file):
    kept = await make_file()
    gone = await make_file()
    live = await service.issuer.issue(kept.id)
    expired = await service.issuer.issue(kept.id, expires_at=utcnow() - timedelta(days=1))
    orphan_a = await service.issuer.issue(gone.id)
    orphan_b = await service.issuer.issue(gone.id)

    async with session_factory() as db:
        await db.execute(delete(File).where(File.id == gone.id))
        await db.commit()

    assert await find_orphaned_file_ids(session_factory) == [gone.id]
    assert await sweep_orphaned_links(service, session_factory) == 2

    assert await service.registry.find_by_token(orphan_a.token) is None
    assert await service.registry.find_by_token(orphan_b.token) is None
    assert await service.registry.find_by_token(live.token) is not None
    # expired links stay so they keep answering "expired"
    assert await service.registry.find_by_token(expired.token) is not None

    assert await sweep_orphaned_links(service, session_factory) == 0


async def test_sweep_respects_batch_limit(service, session_factory, make_file):
    files = [await make_file() for _ in range(3)]
    for f in files:
        await service.issuer.issue(f.id)

    async with session_factory() as db:
        await db.execute(delete(File))
        await db.commit()

    assert await sweep_orphaned_links(service, session_factory, limit=2) == 2
    assert await sweep_orphaned_links(service, session_factory, limit=2) == 1
