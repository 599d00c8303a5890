"""Scraper for the barman-cloud-backup result log."""

from dataclasses import dataclass
from typing import Sequence

from barman_exporter.collector.descriptors import DescriptorSet
from barman_exporter.collector.records import BackupRecord, RecordKind
from barman_exporter.collector.scraper import NoRecordsError, TailScraper
from barman_exporter.collector.sink import MetricsSink


@dataclass(frozen=True)
class BackupState:
    """Derived state of the backup log for one scrape."""

    latest: BackupRecord


def aggregate_backups(
    records: Sequence[BackupRecord], path: str = ""
) -> BackupState:
    """Reduce backup records to the latest one.

    Args:
        records: Valid records in file order.
        path: Source file, used in the error message.

    Returns:
        BackupState holding the last record.

    Raises:
        NoRecordsError: If ``records`` is empty.
    """
    if not records:
        raise NoRecordsError(RecordKind.BACKUP.value, path)
    return BackupState(latest=records[-1])


class BarmanCloudBackup(TailScraper):
    """Collects the result of the most recent barman-cloud-backup run."""

    name = "barman_cloud_backup"
    help = "Collect from Barman Cloud backup result"
    kind = RecordKind.BACKUP

    async def scrape(
        self, sink: MetricsSink, descriptors: DescriptorSet, log
    ) -> None:
        records = await self.read_records(log)
        latest = aggregate_backups(records, str(self.path)).latest

        labels = (latest.bucket_name, latest.backup_id)
        sink.emit(descriptors.backup_latest_bytes, latest.size_bytes, *labels)
        sink.emit(descriptors.backup_latest_timestamp, latest.timestamp, *labels)
        sink.emit(
            descriptors.backup_latest_duration, latest.duration_seconds, *labels
        )
        sink.emit(
            descriptors.backup_latest_success, 1 if latest.success else 0, *labels
        )
