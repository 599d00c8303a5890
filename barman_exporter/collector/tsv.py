"""Tab-separated record parsing."""

from typing import List

RawRecord = List[str]


def parse_records(buf: bytes) -> List[RawRecord]:
    """Split a buffer into tab-delimited rows in file order.

    Rows may carry any number of fields of any length; the minimum field
    count is enforced when rows are validated. Quotes are not special.
    Parsing stops at the first empty row, which marks the end of the
    usable region of the buffer.

    Args:
        buf: Raw bytes, normally the output of ``read_tail``.

    Returns:
        List of rows, each a list of string fields.
    """
    text = buf.decode("utf-8", errors="replace")

    records: List[RawRecord] = []
    for line in text.split("\n"):
        line = line.rstrip("\r")
        if not line:
            break
        records.append(line.split("\t"))
    return records
