"""Scraper for the barman-cloud-wal-archive result log."""

import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence, Union

from barman_exporter.collector.descriptors import DescriptorSet
from barman_exporter.collector.records import (
    MIN_RECORD_FIELDS,
    RecordKind,
    WalRecord,
)
from barman_exporter.collector.scraper import (
    DEFAULT_TAIL_BUFFER_SIZE,
    NoRecordsError,
    TailScraper,
)
from barman_exporter.collector.sink import MetricsSink

DEFAULT_FAILURE_WINDOW_SECONDS = 3600


@dataclass(frozen=True)
class WalState:
    """Derived state of the WAL log for one scrape.

    Attributes:
        latest: Last valid record in file order.
        failures_in_window: Failed archives with a timestamp at or after
            the start of the trailing window.
    """

    latest: WalRecord
    failures_in_window: int


def count_failures_in_window(
    records: Sequence[WalRecord], now: float, window_seconds: float
) -> int:
    """Count failed records whose timestamp is at or after ``now - window``."""
    boundary = now - window_seconds
    return sum(1 for r in records if not r.success and r.timestamp >= boundary)


def aggregate_wals(
    records: Sequence[WalRecord],
    now: float,
    window_seconds: float = DEFAULT_FAILURE_WINDOW_SECONDS,
    path: str = "",
) -> WalState:
    """Reduce WAL records to the latest one plus the windowed failure count.

    Raises:
        NoRecordsError: If ``records`` is empty.
    """
    if not records:
        raise NoRecordsError(RecordKind.WAL.value, path)
    return WalState(
        latest=records[-1],
        failures_in_window=count_failures_in_window(records, now, window_seconds),
    )


class BarmanCloudWal(TailScraper):
    """Collects the latest WAL archive result and recent failures.

    Attributes:
        window_seconds: Length of the trailing failure window.
        clock: Returns the current Unix time; injectable for tests.
    """

    name = "barman_cloud_wal"
    help = "Collect from Barman Cloud WAL archive result"
    kind = RecordKind.WAL

    def __init__(
        self,
        path: Union[str, Path],
        tail_buffer_size: int = DEFAULT_TAIL_BUFFER_SIZE,
        window_seconds: float = DEFAULT_FAILURE_WINDOW_SECONDS,
        min_fields: int = MIN_RECORD_FIELDS,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(path, tail_buffer_size, min_fields)
        self.window_seconds = window_seconds
        self.clock = clock

    async def scrape(
        self, sink: MetricsSink, descriptors: DescriptorSet, log
    ) -> None:
        records = await self.read_records(log)
        state = aggregate_wals(
            records, self.clock(), self.window_seconds, str(self.path)
        )
        latest = state.latest

        bucket = latest.bucket_name
        sink.emit(descriptors.wal_latest_bytes, latest.size_bytes, bucket)
        sink.emit(descriptors.wal_latest_timestamp, latest.timestamp, bucket)
        sink.emit(descriptors.wal_latest_duration, latest.duration_seconds, bucket)
        sink.emit(
            descriptors.wal_failures_in_window, state.failures_in_window, bucket
        )
