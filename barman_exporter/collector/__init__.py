"""Log-tail collection for Barman Cloud result files.

Pipeline per source: read_tail → parse_records → validate_records →
aggregate → emit. The Exporter runs one such pipeline per configured
source concurrently for every scrape.
"""

from typing import List

from barman_exporter.collector.backup import BarmanCloudBackup
from barman_exporter.collector.exporter import Exporter, ScrapeResult, ScraperOutcome
from barman_exporter.collector.scraper import NoRecordsError, ReadInProgressError, Scraper
from barman_exporter.collector.sink import SampleSink, SinkCollector, SinkError
from barman_exporter.collector.wal import BarmanCloudWal
from barman_exporter.common.config import ExporterSettings


def build_scrapers(settings: ExporterSettings) -> List[Scraper]:
    """Create a scraper for every source whose log file is configured."""
    scrapers: List[Scraper] = []
    if settings.backup_log_file:
        scrapers.append(
            BarmanCloudBackup(
                settings.backup_log_file,
                tail_buffer_size=settings.tail_buffer_size,
                min_fields=settings.min_record_fields,
            )
        )
    if settings.wal_log_file:
        scrapers.append(
            BarmanCloudWal(
                settings.wal_log_file,
                tail_buffer_size=settings.tail_buffer_size,
                window_seconds=settings.wal_failure_window_seconds,
                min_fields=settings.min_record_fields,
            )
        )
    return scrapers


__all__ = [
    "BarmanCloudBackup",
    "BarmanCloudWal",
    "Exporter",
    "NoRecordsError",
    "ReadInProgressError",
    "SampleSink",
    "ScrapeResult",
    "ScraperOutcome",
    "Scraper",
    "SinkCollector",
    "SinkError",
    "build_scrapers",
]
