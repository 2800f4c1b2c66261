import asyncio
import logging
import time

from sqlalchemy import select

from cloudshare.core.config import settings
from cloudshare.core.database import SessionLocal
from cloudshare.models.file import File
from cloudshare.models.shared_link import SharedLink
from cloudshare.monitoring.setup import report_cleanup

logger = logging.getLogger("cloudshare")

INTERVAL_SECS = settings.CLEANUP_INTERVAL_SECONDS
MAX_PER_LOOP = settings.CLEANUP_MAX_RECORDS_PER_LOOP


async def find_orphaned_file_ids(session_factory=SessionLocal, limit: int = MAX_PER_LOOP) -> list[int]:
    """file_ids that still have shared links although the file row is gone."""
    async with session_factory() as db:
        res = await db.execute(
            select(SharedLink.file_id)
            .where(~select(File.id).where(File.id == SharedLink.file_id).exists())
            .distinct()
            .limit(limit)
        )
        return list(res.scalars().all())


async def sweep_orphaned_links(service, session_factory=SessionLocal, limit: int = MAX_PER_LOOP) -> int:
    started = time.monotonic()
    links_deleted = 0
    for file_id in await find_orphaned_file_ids(session_factory, limit):
        links_deleted += await service.delete_links_for_file(file_id)

    duration = time.monotonic() - started
    report_cleanup(links_deleted, duration)
    logger.info("cleanup_summary links_deleted=%s duration=%.3fs", links_deleted, duration)
    return links_deleted


async def cleanup_orphaned_links(service):
    logger.info("Cleanup task started: interval=%s max_per_loop=%s", INTERVAL_SECS, MAX_PER_LOOP)

    while True:
        try:
            await sweep_orphaned_links(service)
            await asyncio.sleep(INTERVAL_SECS)
        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled by shutdown")
            raise
        except Exception as e:
            logger.exception("Cleanup loop error: %s", e)
            await asyncio.sleep(min(60, INTERVAL_SECS))


async def start_cleanup_task(service):
    return await cleanup_orphaned_links(service)
