"""FastAPI adapter for the exporter's HTTP endpoints."""

import json
import logging

from fastapi import APIRouter, Query, Response
from fastapi.responses import HTMLResponse, PlainTextResponse

from teamcity_exporter.core.encoding.ndjson import encode_logs
from teamcity_exporter.core.encoding.prometheus import CONTENT_TYPE, encode_current
from teamcity_exporter.core.ports import LogStoragePort, MetricsStoragePort

logger = logging.getLogger(__name__)

# Valid log levels for validation
VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_LANDING_PAGE = """<html>
<head><title>Teamcity Exporter</title></head>
<body>
<h1>Teamcity Exporter</h1>
<p><a href='{metrics_path}'>Metrics</a></p>
</body>
</html>
"""


def _error_response() -> Response:
    return Response(
        content=json.dumps({"error": "Internal Server Error"}),
        status_code=500,
        media_type="application/json",
    )


def create_exporter_router(
    log_storage: LogStoragePort,
    metrics_storage: MetricsStoragePort,
    metrics_path: str = "/metrics",
) -> APIRouter:
    """Create a FastAPI router with the metrics, logs and landing endpoints.

    Args:
        log_storage: Storage adapter implementing LogStoragePort.
        metrics_storage: Storage adapter implementing MetricsStoragePort.
        metrics_path: Path under which metrics are exposed.

    Returns:
        APIRouter with the endpoints configured.
    """
    router = APIRouter()

    @router.get("/", response_class=HTMLResponse)
    async def landing() -> str:
        """Return a small page linking to the metrics path."""
        return _LANDING_PAGE.format(metrics_path=metrics_path)

    @router.get("/-/healthy", response_class=PlainTextResponse)
    async def healthy() -> str:
        return "OK"

    @router.get(metrics_path)
    async def get_metrics() -> Response:
        """Return the current samples in Prometheus text format."""
        try:
            body = await encode_current(metrics_storage.scrape())
        except Exception:
            logger.exception("Error encoding metrics endpoint")
            return _error_response()
        return Response(content=body, media_type=CONTENT_TYPE)

    @router.get("/logs")
    async def get_logs(
        since: float = Query(default=0, ge=0),
        level: str | None = Query(default=None),
    ) -> Response:
        """Return captured exporter logs in NDJSON format.

        Args:
            since: Unix timestamp. Returns entries with timestamp > since.
            level: Optional level filter; unknown levels are ignored.
        """
        level_filter = level.upper() if level and level.upper() in VALID_LEVELS else None
        try:
            body = await encode_logs(log_storage.read(since=since, level=level_filter))
        except Exception:
            logger.exception("Error encoding logs endpoint")
            return _error_response()
        return Response(content=body, media_type="application/x-ndjson")

    return router
