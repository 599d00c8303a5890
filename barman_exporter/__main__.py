"""Exporter entrypoint: ``python -m barman_exporter``."""

import structlog
import uvicorn

from barman_exporter import __version__
from barman_exporter.common.config import ExporterSettings, get_settings
from barman_exporter.common.logging_config import configure_logging
from barman_exporter.server.app import create_app

logger = structlog.get_logger(__name__)


def _log_configuration(settings: ExporterSettings) -> None:
    logger.info(
        "Starting barman_cloud_exporter",
        version=__version__,
        backup_log_file=settings.backup_log_file,
        wal_log_file=settings.wal_log_file,
        tail_buffer_size=settings.tail_buffer_size,
        wal_failure_window_seconds=settings.wal_failure_window_seconds,
        min_record_fields=settings.min_record_fields,
        default_scrape_timeout_seconds=settings.default_scrape_timeout_seconds,
        listen=f"{settings.host}:{settings.port}",
        telemetry_path=settings.telemetry_path,
    )


def main():
    """Main entrypoint."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    _log_configuration(settings)

    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    main()
