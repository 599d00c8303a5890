"""Typed records for the Barman Cloud result logs.

Each hook script appends one tab-separated line per operation. The
columns are positional:

Backup log (written after ``barman-cloud-backup``)::

    timestamp  bucket_name  exit_code  duration  size  backup_id

WAL log (written after ``barman-cloud-wal-archive``)::

    timestamp  bucket_name  wal_name  size  success  duration

Rows with too few columns or a non-integer numeric column are discarded
with a warning. Discarding a row never affects rows already accepted.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Union

import structlog

from barman_exporter.collector.tsv import RawRecord

logger = structlog.get_logger(__name__)

# The highest fixed column index is 5 for both kinds.
MIN_RECORD_FIELDS = 6

_INTEGER = re.compile(r"[+-]?[0-9]+")


class RecordKind(str, Enum):
    """Kinds of result log understood by the exporter."""

    BACKUP = "backup"
    WAL = "wal"


class RecordFormatError(ValueError):
    """Raised when a raw row cannot be converted into a typed record."""


@dataclass(frozen=True)
class BackupRecord:
    """One completed backup run.

    Attributes:
        timestamp: Unix seconds when the run finished.
        bucket_name: Destination bucket.
        success: True when the backup exited with code 0.
        duration_seconds: Wall-clock duration of the run.
        size_bytes: Size of the backup.
        backup_id: Barman backup identifier.
    """

    timestamp: int
    bucket_name: str
    success: bool
    duration_seconds: int
    size_bytes: int
    backup_id: str


@dataclass(frozen=True)
class WalRecord:
    """One WAL segment archive attempt."""

    timestamp: int
    bucket_name: str
    wal_name: str
    size_bytes: int
    success: bool
    duration_seconds: int


Record = Union[BackupRecord, WalRecord]


def parse_int(value: str, column: str) -> int:
    """Parse a base-10 integer column, rejecting blanks and separators."""
    if not _INTEGER.fullmatch(value):
        raise RecordFormatError(f"{column} is not an integer: {value!r}")
    return int(value)


def _check_width(fields: Sequence[str], min_fields: int) -> None:
    if len(fields) < min_fields:
        raise RecordFormatError(
            f"expected at least {min_fields} fields, got {len(fields)}"
        )


def backup_record_from_fields(
    fields: Sequence[str], min_fields: int = MIN_RECORD_FIELDS
) -> BackupRecord:
    """Build a BackupRecord from a raw row.

    Raises:
        RecordFormatError: If the row is too short or a column is malformed.
    """
    _check_width(fields, min_fields)
    exit_code = parse_int(fields[2], "exit_code")
    return BackupRecord(
        timestamp=parse_int(fields[0], "timestamp"),
        bucket_name=fields[1],
        success=exit_code == 0,
        duration_seconds=parse_int(fields[3], "duration"),
        size_bytes=parse_int(fields[4], "size"),
        backup_id=fields[5],
    )


def wal_record_from_fields(
    fields: Sequence[str], min_fields: int = MIN_RECORD_FIELDS
) -> WalRecord:
    """Build a WalRecord from a raw row.

    The success column is a flag: any non-zero value means the segment
    was archived.

    Raises:
        RecordFormatError: If the row is too short or a column is malformed.
    """
    _check_width(fields, min_fields)
    return WalRecord(
        timestamp=parse_int(fields[0], "timestamp"),
        bucket_name=fields[1],
        wal_name=fields[2],
        size_bytes=parse_int(fields[3], "size"),
        success=parse_int(fields[4], "success") != 0,
        duration_seconds=parse_int(fields[5], "duration"),
    )


_BUILDERS = {
    RecordKind.BACKUP: backup_record_from_fields,
    RecordKind.WAL: wal_record_from_fields,
}


def validate(
    fields: RawRecord,
    kind: RecordKind,
    min_fields: int = MIN_RECORD_FIELDS,
    log=None,
) -> Optional[Record]:
    """Convert a raw row into a typed record, or discard it.

    A malformed row is logged at warning level with its raw fields and
    ``None`` is returned; no exception escapes.

    Args:
        fields: Raw string fields of one row.
        kind: Which log the row came from.
        min_fields: Minimum number of fields a row must carry.
        log: Logger to report discarded rows on.

    Returns:
        The typed record, or None if the row was discarded.
    """
    log = log or logger
    try:
        return _BUILDERS[kind](fields, min_fields)
    except RecordFormatError as e:
        log.warning(
            f"Could not parse {kind.value} TSV line",
            line=list(fields),
            reason=str(e),
        )
        return None


def validate_records(
    rows: Sequence[RawRecord],
    kind: RecordKind,
    min_fields: int = MIN_RECORD_FIELDS,
    log=None,
) -> List[Record]:
    """Validate rows in order, keeping only the ones that convert."""
    records: List[Record] = []
    for row in rows:
        record = validate(row, kind, min_fields, log)
        if record is not None:
            records.append(record)
    return records
