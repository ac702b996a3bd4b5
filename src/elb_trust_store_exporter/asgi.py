"""
FastAPI application: metrics endpoint, landing page and health probes.

Architecture:
  - FastAPI: serves the Prometheus exposition and the probes
  - Uvicorn: ASGI server (handles signals, graceful shutdown)
  - APScheduler: BackgroundScheduler thread running the scrape cycles
  - Lifespan: runs the startup cycle off the event loop, then starts the
    scheduler; shuts it down when Uvicorn stops

Request handlers only ever read the published Snapshot, so a slow or
failing cycle never delays or fails a metrics scrape.

Entry point for production: elb-trust-store-exporter (see main.py), or
uvicorn --factory elb_trust_store_exporter.asgi:app_factory
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI, Response
from fastapi.responses import HTMLResponse, JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from elb_trust_store_exporter import __version__
from elb_trust_store_exporter.config import AppSettings
from elb_trust_store_exporter.domain.models import Snapshot
from elb_trust_store_exporter.publisher import SnapshotPublisher, build_registry
from elb_trust_store_exporter.scheduler import CycleJob, create_scheduler

log = structlog.get_logger()

_LANDING_PAGE = """<html>
<head><title>AWS ELB Trust Store Exporter</title></head>
<body>
<h1>AWS ELB Trust Store Exporter</h1>
<p><a href="{metrics_path}">Metrics</a></p>
</body>
</html>
"""


@dataclass
class ExporterState:
    """Runtime objects shared between the lifespan and the request handlers."""

    settings: AppSettings
    publisher: SnapshotPublisher
    registry: CollectorRegistry
    job: CycleJob
    scheduler: BackgroundScheduler | None = None


def create_app(
    settings: AppSettings,
    cycle_fn: Callable[[], Snapshot],
    publisher: SnapshotPublisher | None = None,
) -> FastAPI:
    """
    Build the FastAPI application around a wired scrape cycle.

    Args:
        settings: Validated application settings.
        cycle_fn: Zero-argument callable running one scrape cycle.
        publisher: Snapshot holder; a fresh one by default.
    """
    publisher = publisher or SnapshotPublisher()
    state = ExporterState(
        settings=settings,
        publisher=publisher,
        registry=build_registry(
            publisher,
            version=settings.build.version,
            commit=settings.build.commit,
            date=settings.build.date,
            built_by=settings.build.built_by,
        ),
        job=CycleJob(cycle_fn, publisher),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """
        Startup: run the first cycle (if enabled) and start the scheduler.
        Shutdown: stop the scheduler without waiting for a running cycle.
        """
        log.info(
            "asgi.startup",
            interval_seconds=settings.interval_seconds,
            run_on_startup=settings.run_on_startup,
        )
        # create_scheduler runs the startup cycle synchronously; keep it off the event loop.
        scheduler = await asyncio.to_thread(
            create_scheduler,
            state.job,
            settings.interval_seconds,
            settings.run_on_startup,
        )
        scheduler.start()
        state.scheduler = scheduler
        log.info("asgi.startup_complete", metrics_path=settings.web.metrics_path)

        yield

        log.info("asgi.shutdown", reason="SIGTERM or server stop")
        try:
            scheduler.shutdown(wait=False)
        except Exception as e:
            log.warning("asgi.scheduler_shutdown_error", error=str(e))
        log.info("asgi.shutdown_complete")

    app = FastAPI(
        title="elb-trust-store-exporter",
        description="Prometheus exporter for AWS ELB trust store CA certificates",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.exporter = state

    def metrics() -> Response:
        """Prometheus text exposition of the current Snapshot."""
        return Response(content=generate_latest(state.registry), media_type=CONTENT_TYPE_LATEST)

    app.add_api_route(settings.web.metrics_path, metrics, methods=["GET"], include_in_schema=False)

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def landing() -> HTMLResponse:
        return HTMLResponse(_LANDING_PAGE.format(metrics_path=settings.web.metrics_path))

    @app.get("/health")
    async def health() -> JSONResponse:
        """
        Liveness probe: 200 while the scheduler thread is running, 503 otherwise.
        """
        if state.scheduler is None or not state.scheduler.running:
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "reason": "scheduler not running"},
            )
        return JSONResponse(
            status_code=200,
            content={"status": "healthy", "scheduler_running": True},
        )

    @app.get("/ready")
    async def ready() -> JSONResponse:
        """
        Readiness probe: 200 once a Snapshot has been published.

        A published Snapshot with collector_success 0 is still ready:
        Prometheus should scrape it and alert on the flag.
        """
        snapshot, published = state.publisher.current_with_count()
        if published == 0:
            return JSONResponse(
                status_code=503,
                content={"status": "starting", "cycle_running": state.job.running},
            )
        return JSONResponse(
            status_code=200,
            content={"status": "ready", "last_cycle_success": snapshot.success},
        )

    @app.get("/info")
    async def info() -> dict[str, Any]:
        """Application metadata for debugging."""
        return {
            "name": "elb-trust-store-exporter",
            "version": settings.build.version,
            "commit": settings.build.commit,
            "region": settings.region,
            "trust_store_arns": settings.trust_store_arns,
            "interval_seconds": settings.interval_seconds,
            "snapshots_published": state.publisher.published_count,
            "cycle_running": state.job.running,
        }

    return app


def app_factory() -> FastAPI:
    """Build the application from environment settings (for `uvicorn --factory`)."""
    from elb_trust_store_exporter.main import build_cycle, configure_structlog

    settings = AppSettings()
    configure_structlog(settings.log_level, settings.log_format)
    return create_app(settings, build_cycle(settings))
