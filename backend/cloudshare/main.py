import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from starlette.concurrency import run_in_threadpool

from cloudshare.core.config import settings
from cloudshare.core.database import Base, SessionLocal, engine, utcnow
from cloudshare.core.errors import RangeUnsatisfiableError, ShareLinkError
from cloudshare.core.minio_client import initialize_minio_bucket, minio_client
from cloudshare.dependencies import get_link_service
from cloudshare.monitoring.setup import setup_monitoring
from cloudshare.routes import download, share_links
from cloudshare.tasks.cleanup import start_cleanup_task

logger = logging.getLogger("cloudshare")

@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        async with engine.begin() as conn:
            if engine.dialect.name == "sqlite":
                await conn.execute(text("PRAGMA journal_mode=WAL;"))
            logger.info("Creating database tables: %s", ", ".join(Base.metadata.tables))
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Database initialization failed: %s", e)
        raise

    if settings.MINIO_ENABLED:
        try:
            initialize_minio_bucket()
            logger.info("MinIO initialized")
        except Exception as e:
            logger.error("MinIO initialization failed: %s", e)
            raise

    cleanup_task = None
    if settings.CLEANUP_ENABLED:
        cleanup_task = asyncio.create_task(start_cleanup_task(get_link_service()))
        logger.info("Background cleanup task started")

    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            logger.info("Cleanup task cancelled")
    logger.info("Application shutdown complete")

app = FastAPI(
    title="CloudShare",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "Content-Length", "Content-Range", "Accept-Ranges"],
)


@app.exception_handler(ShareLinkError)
async def share_link_error_handler(request: Request, exc: ShareLinkError):
    if isinstance(exc, RangeUnsatisfiableError):
        return Response(status_code=exc.status_code, headers={"Content-Range": f"bytes */{exc.total_size}"})
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "reason": exc.reason})


app.include_router(share_links, prefix=settings.API_PREFIX)
app.include_router(download, prefix=settings.API_PREFIX)

setup_monitoring(app, metrics_path=f"{settings.API_PREFIX}/metrics")

@app.get("/health")
async def health_check():
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    if settings.MINIO_ENABLED:
        try:
            await run_in_threadpool(minio_client.bucket_exists, settings.MINIO_BUCKET)
            storage_status = "ok"
        except Exception as e:
            storage_status = f"error: {str(e)}"
    else:
        storage_status = "local"

    return {
        "status": "running",
        "timestamp": utcnow().isoformat(),
        "database": db_status,
        "storage": storage_status
    }

if __name__ == "__main__":
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info",
        timeout_keep_alive=60,
        limit_concurrency=100
    )
