"""FastAPI application serving the Barman Cloud metrics.

Every request to the telemetry path runs one fresh scrape: a new sink is
filled by the Exporter, wrapped in a per-request registry and encoded in
the Prometheus text format. Nothing carries over between requests except
the exporter's own scrape counter.
"""

import time
from typing import Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from barman_exporter import __version__
from barman_exporter.collector import Exporter, SampleSink, SinkCollector, build_scrapers
from barman_exporter.common.config import ExporterSettings, get_settings
from barman_exporter.server.metrics import ExporterMetrics
from barman_exporter.server.models import HealthResponse

logger = structlog.get_logger(__name__)

SCRAPE_TIMEOUT_HEADER = "X-Prometheus-Scrape-Timeout-Seconds"

LANDING_PAGE = """<html>
<head><title>Barman Cloud Exporter</title></head>
<body>
<h1>Barman Cloud Exporter</h1>
<p>Prometheus Exporter for Barman Cloud WAL archiving and backup</p>
<p>Version {version}</p>
<ul><li><a href="{path}">Metrics</a></li></ul>
</body>
</html>
"""


def scrape_timeout(request: Request, settings: ExporterSettings) -> Optional[float]:
    """Work out the deadline for one scrape.

    Prometheus announces its own scrape timeout in a request header. The
    configured offset is subtracted so the response still arrives in time.
    Unparsable header values are logged and ignored.

    Args:
        request: Incoming scrape request.
        settings: Exporter settings.

    Returns:
        Deadline in seconds, or None to wait for every source.
    """
    raw = request.headers.get(SCRAPE_TIMEOUT_HEADER)
    if raw:
        try:
            timeout = float(raw)
        except ValueError as e:
            logger.error("Failed to parse timeout from header", value=raw, error=str(e))
        else:
            if timeout > 0:
                offset = settings.scrape_timeout_offset_seconds
                return timeout - offset if timeout > offset else timeout
            logger.error("Ignoring non-positive scrape timeout", value=raw)
    return settings.default_scrape_timeout_seconds


def create_app(
    settings: Optional[ExporterSettings] = None,
    exporter: Optional[Exporter] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Exporter settings; loaded from the environment if None.
        exporter: Exporter to use; built from ``settings`` if None.

    Returns:
        FastAPI: Application with the telemetry, landing and health routes.
    """
    settings = settings or get_settings()
    exporter = exporter or Exporter(build_scrapers(settings))
    exporter_metrics = ExporterMetrics()

    if not exporter.scrapers:
        logger.warning(
            "No result log configured; set BARMAN_EXPORTER_BACKUP_LOG_FILE "
            "or BARMAN_EXPORTER_WAL_LOG_FILE"
        )

    app = FastAPI(
        title="Barman Cloud Exporter",
        description="Prometheus Exporter for Barman Cloud WAL archiving and backup",
        version=__version__,
    )
    app.state.settings = settings
    app.state.exporter = exporter
    app.state.exporter_metrics = exporter_metrics

    async def metrics_endpoint(request: Request):
        """Prometheus metrics endpoint."""
        timeout = scrape_timeout(request, settings)
        sink = SampleSink()
        try:
            result = await exporter.collect(sink, timeout=timeout)
        except Exception as e:
            exporter_metrics.record_scrape_error()
            logger.error("Scrape failed", error=str(e), error_type=type(e).__name__)
            return Response(
                content=f"# Scrape failed: {e}\n",
                status_code=500,
                media_type="text/plain",
            )
        exporter_metrics.record_scrape(result.up)

        registry = CollectorRegistry()
        registry.register(SinkCollector(sink))
        for collector in exporter_metrics.collectors():
            registry.register(collector)
        return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)

    app.add_api_route(settings.telemetry_path, metrics_endpoint, methods=["GET"])

    if settings.telemetry_path != "/":

        @app.get("/", response_class=HTMLResponse)
        async def landing_page():
            """Landing page linking to the metrics."""
            return LANDING_PAGE.format(
                version=__version__, path=settings.telemetry_path
            )

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Liveness endpoint."""
        return HealthResponse(
            status="healthy",
            version=__version__,
            timestamp=int(time.time()),
        )

    return app
