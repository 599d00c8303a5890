"""Metric descriptors for everything the exporter emits.

Descriptors are built once per Exporter and handed to each scraper by
reference. They are frozen, so concurrent scrapers can share them
without coordination.

Metrics Defined:
- <ns>_backup_latest_bytes: Size of the latest backup
- <ns>_backup_latest_timestamp_seconds: When the latest backup finished
- <ns>_backup_latest_processed_duration_seconds: Duration of the latest backup
- <ns>_backup_latest_success: Latest backup succeeded (1) or not (0)
- <ns>_wal_latest_bytes: Size of the latest archived WAL segment
- <ns>_wal_latest_timestamp_seconds: When the latest WAL was archived
- <ns>_wal_latest_processed_duration_seconds: Duration of the latest archive
- <ns>_wal_failures_in_window: Failed WAL archives in the trailing window
- <ns>_up: Every source was scraped successfully (1) or not (0)
- <ns>_scrape_duration_seconds: Duration of the whole scrape
- <ns>_scrape_collector_success: Per-scraper success flag
- <ns>_scrape_collector_duration_seconds: Per-scraper duration
"""

from dataclasses import dataclass
from typing import Tuple

NAMESPACE = "barman_cloud"

BACKUP_SUBSYSTEM = "backup"
WAL_SUBSYSTEM = "wal"

BACKUP_LABELS = ("bucket_name", "backup_id")
WAL_LABELS = ("bucket_name",)
COLLECTOR_LABELS = ("collector",)


def build_fq_name(namespace: str, subsystem: str, name: str) -> str:
    """Join the non-empty parts of a metric name with underscores."""
    return "_".join(part for part in (namespace, subsystem, name) if part)


@dataclass(frozen=True)
class MetricDescriptor:
    """Name, help text and label names of one gauge family."""

    name: str
    help: str
    label_names: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DescriptorSet:
    """All descriptors used during a scrape."""

    backup_latest_bytes: MetricDescriptor
    backup_latest_timestamp: MetricDescriptor
    backup_latest_duration: MetricDescriptor
    backup_latest_success: MetricDescriptor
    wal_latest_bytes: MetricDescriptor
    wal_latest_timestamp: MetricDescriptor
    wal_latest_duration: MetricDescriptor
    wal_failures_in_window: MetricDescriptor
    up: MetricDescriptor
    scrape_duration: MetricDescriptor
    collector_success: MetricDescriptor
    collector_duration: MetricDescriptor


def build_descriptor_set(namespace: str = NAMESPACE) -> DescriptorSet:
    """Construct the descriptor set for a metric namespace.

    Args:
        namespace: Prefix for every metric name.

    Returns:
        DescriptorSet: Immutable descriptors for one exporter.
    """
    return DescriptorSet(
        backup_latest_bytes=MetricDescriptor(
            build_fq_name(namespace, BACKUP_SUBSYSTEM, "latest_bytes"),
            "Latest backup size in bytes",
            BACKUP_LABELS,
        ),
        backup_latest_timestamp=MetricDescriptor(
            build_fq_name(namespace, BACKUP_SUBSYSTEM, "latest_timestamp_seconds"),
            "Latest backup performed at timestamp",
            BACKUP_LABELS,
        ),
        backup_latest_duration=MetricDescriptor(
            build_fq_name(
                namespace, BACKUP_SUBSYSTEM, "latest_processed_duration_seconds"
            ),
            "Latest backup performed duration in seconds",
            BACKUP_LABELS,
        ),
        backup_latest_success=MetricDescriptor(
            build_fq_name(namespace, BACKUP_SUBSYSTEM, "latest_success"),
            "Latest backup status successful (1) or not (0)",
            BACKUP_LABELS,
        ),
        wal_latest_bytes=MetricDescriptor(
            build_fq_name(namespace, WAL_SUBSYSTEM, "latest_bytes"),
            "Latest WAL size in bytes",
            WAL_LABELS,
        ),
        wal_latest_timestamp=MetricDescriptor(
            build_fq_name(namespace, WAL_SUBSYSTEM, "latest_timestamp_seconds"),
            "Latest WAL processed at timestamp",
            WAL_LABELS,
        ),
        wal_latest_duration=MetricDescriptor(
            build_fq_name(
                namespace, WAL_SUBSYSTEM, "latest_processed_duration_seconds"
            ),
            "Latest WAL process duration in seconds",
            WAL_LABELS,
        ),
        wal_failures_in_window=MetricDescriptor(
            build_fq_name(namespace, WAL_SUBSYSTEM, "failures_in_window"),
            "Number of WAL archives that failed within the trailing window",
            WAL_LABELS,
        ),
        up=MetricDescriptor(
            build_fq_name(namespace, "", "up"),
            "Whether every configured Barman Cloud log was scraped successfully",
        ),
        scrape_duration=MetricDescriptor(
            build_fq_name(namespace, "", "scrape_duration_seconds"),
            "Duration of the scrape in seconds",
        ),
        collector_success=MetricDescriptor(
            build_fq_name(namespace, "scrape", "collector_success"),
            "Whether a collector succeeded",
            COLLECTOR_LABELS,
        ),
        collector_duration=MetricDescriptor(
            build_fq_name(namespace, "scrape", "collector_duration_seconds"),
            "Collector time duration in seconds",
            COLLECTOR_LABELS,
        ),
    )
