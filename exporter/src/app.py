"""
FastAPI application serving the Prometheus endpoint.

Routes:
- ``GET /metrics``: Prometheus text exposition, one device round-trip per
  request. A failed collection returns HTTP 503 and leaves the process and
  the shared credential untouched.
- ``GET /health``: JSON health summary; 200 when ok, 503 when degraded.
- ``GET /``: liveness probe.

The metrics route is a plain ``def`` so FastAPI runs the blocking device
calls in its threadpool.

CHANGELOG:
- 2026-10-05: Initial creation (STORY-010)
- 2026-10-06: Add /health endpoint (STORY-011)

TODO:
- None
"""

import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from exporter.src import health
from exporter.src.errors import CollectionError
from exporter.src.metrics import EnvoyMetricsCollector, SnapshotSource, build_registry
from exporter.src.scheduler import CredentialScheduler

logger = logging.getLogger(__name__)


def create_app(
    scheduler: CredentialScheduler,
    collector: SnapshotSource,
) -> FastAPI:
    """Build the exporter application.

    Args:
        scheduler: Started credential scheduler.
        collector: Telemetry collector used on every scrape.

    Returns:
        FastAPI: Configured application.
    """
    registry = build_registry(EnvoyMetricsCollector(scheduler, collector))

    app = FastAPI(
        title="Envoy Exporter",
        description="Prometheus exporter for Enphase Envoy production data.",
        version="0.1.0",
    )

    @app.get("/")
    def root() -> dict:
        """Liveness probe."""
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics() -> Response:
        """Scrape the Envoy and return the Prometheus exposition."""
        try:
            payload = generate_latest(registry)
        except CollectionError as exc:
            health.record_scrape_failure()
            logger.warning("Scrape failed: %s", exc)
            return PlainTextResponse(f"scrape failed: {exc}\n", status_code=503)
        except RuntimeError as exc:
            health.record_scrape_failure()
            logger.warning("Scrape rejected: %s", exc)
            return PlainTextResponse(f"scrape failed: {exc}\n", status_code=503)

        health.record_scrape_success()
        return Response(content=payload, media_type=CONTENT_TYPE_LATEST)

    @app.get("/health")
    def health_check() -> JSONResponse:
        """Health summary for container healthchecks."""
        status = health.get_health_status(scheduler)
        status_code = 200 if status["status"] == "ok" else 503
        return JSONResponse(status_code=status_code, content=status)

    return app
