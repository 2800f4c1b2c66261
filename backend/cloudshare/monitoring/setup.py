import logging
import time

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.types import ASGIApp

logger = logging.getLogger("cloudshare")

links_created = Counter("share_links_created_total", "Shared links issued")
link_access = Counter("share_link_access_total", "Access gate decisions by outcome", ["outcome"])
bytes_served = Counter("share_link_bytes_served_total", "Bytes streamed through shared links")
cleanup_runs = Counter("share_link_cleanup_runs_total", "Orphan sweep runs")
orphans_deleted = Counter("share_link_orphans_deleted_total", "Links deleted because their file is gone")
cleanup_duration = Histogram("share_link_cleanup_duration_seconds", "Duration of an orphan sweep in seconds")


def report_link_created() -> None:
    links_created.inc()


def report_access(outcome: str) -> None:
    link_access.labels(outcome=outcome).inc()


def report_bytes_served(count: int) -> None:
    if count:
        bytes_served.inc(count)


def report_cleanup(links_deleted: int, duration: float) -> None:
    """Record orphan sweep metrics to Prometheus."""
    cleanup_runs.inc()
    if links_deleted:
        orphans_deleted.inc(links_deleted)
    cleanup_duration.observe(duration)


def setup_monitoring(app: ASGIApp, metrics_path: str = "/api/metrics"):
    Instrumentator().instrument(app).expose(app, endpoint=metrics_path, include_in_schema=False)

    @app.middleware("http")
    async def monitor_requests(request: Request, call_next):
        start_time = time.time()
        response = None
        try:
            response = await call_next(request)
        except HTTPException as e:
            logger.exception("HTTP exception: %s %s -> %s", request.method, request.url.path, e.detail)
            response = JSONResponse(status_code=e.status_code, content={"detail": e.detail})
        except Exception as e:
            logger.exception("Unhandled error: %s %s -> %s", request.method, request.url.path, e)
            response = JSONResponse(status_code=500, content={"detail": "Internal Server Error"})
        finally:
            process_time = time.time() - start_time
            logger.info("method=%s path=%s status=%s duration=%.4fs",
                        request.method, request.url.path,
                        getattr(response, "status_code", "?"), process_time)
        return response
