"""Scraper interface and the shared log-tail pipeline.

A scraper owns one source file. Each call to ``scrape`` reads the tail
of that file, parses and validates the rows, reduces them to the latest
state and emits the resulting samples. Nothing is kept between calls.
"""

import asyncio
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Union

from barman_exporter.collector.descriptors import DescriptorSet
from barman_exporter.collector.records import (
    MIN_RECORD_FIELDS,
    Record,
    RecordKind,
    validate_records,
)
from barman_exporter.collector.sink import MetricsSink
from barman_exporter.collector.tail import read_tail
from barman_exporter.collector.tsv import parse_records

DEFAULT_TAIL_BUFFER_SIZE = 65536


class NoRecordsError(Exception):
    """Raised when a source holds no row that survives validation."""

    def __init__(self, source: str, path: Union[str, Path]):
        self.source = source
        self.path = str(path)
        super().__init__(f"No values in {source} TSV file: {self.path}")


class ReadInProgressError(Exception):
    """Raised when the previous read of a source has not returned yet."""

    def __init__(self, path: Union[str, Path]):
        self.path = str(path)
        super().__init__(f"Previous read of {self.path} is still in progress")


class Scraper(ABC):
    """Abstract base class for a single metrics source."""

    name: str = ""
    help: str = ""

    @abstractmethod
    async def scrape(
        self, sink: MetricsSink, descriptors: DescriptorSet, log
    ) -> None:
        """Collect from the source and emit samples into ``sink``.

        Args:
            sink: Receiver of the samples.
            descriptors: Shared descriptor set of the exporter.
            log: Logger bound to this scraper.

        Raises:
            Exception: Any source-local failure; the exporter contains it.
        """


class TailScraper(Scraper):
    """Scraper backed by the tail of a tab-separated result log.

    File reads run on a single worker thread owned by the scraper. A read
    that hangs past the scrape deadline keeps only that worker busy, and
    later scrapes of the same source fail fast with ReadInProgressError
    until it returns.

    Attributes:
        path: Result log to read.
        tail_buffer_size: Maximum number of bytes read per scrape.
        min_fields: Minimum number of fields a row must carry.
    """

    kind: RecordKind

    def __init__(
        self,
        path: Union[str, Path],
        tail_buffer_size: int = DEFAULT_TAIL_BUFFER_SIZE,
        min_fields: int = MIN_RECORD_FIELDS,
    ):
        self.path = Path(path)
        self.tail_buffer_size = tail_buffer_size
        self.min_fields = min_fields
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"read-{self.path.name}"
        )
        self._pending_read: Optional[Future] = None

    @property
    def read_in_progress(self) -> bool:
        return self._pending_read is not None and not self._pending_read.done()

    async def read_records(self, log) -> List[Record]:
        """Read, parse and validate the current tail of the log.

        Returns:
            Valid records in file order, possibly empty.

        Raises:
            OSError: If the file cannot be read.
            ReadInProgressError: If an earlier read is still blocked.
        """
        if self.read_in_progress:
            raise ReadInProgressError(self.path)
        self._pending_read = self._executor.submit(
            read_tail, self.path, self.tail_buffer_size
        )
        buf = await asyncio.wrap_future(self._pending_read)
        rows = parse_records(buf)
        records = validate_records(rows, self.kind, self.min_fields, log)
        log.debug(
            "Parsed result log",
            path=str(self.path),
            bytes_read=len(buf),
            rows=len(rows),
            records=len(records),
        )
        return records
