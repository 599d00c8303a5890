"""Bounded reads from the end of append-only log files."""

import os
from pathlib import Path
from typing import Union

NEWLINE = b"\n"


def read_tail(path: Union[str, Path], max_bytes: int) -> bytes:
    """Read at most ``max_bytes`` from the end of a file.

    The returned buffer always starts on a record boundary. When the
    window opens in the middle of a line, everything up to and including
    the first newline inside the window is dropped. A window that holds
    only a fragment of a line yields an empty buffer.

    Args:
        path: File to read.
        max_bytes: Size of the tail window in bytes.

    Returns:
        The aligned tail of the file.

    Raises:
        OSError: If the file is missing or unreadable.
        ValueError: If ``max_bytes`` is not positive.
    """
    if max_bytes <= 0:
        raise ValueError("max_bytes must be positive")

    with open(path, "rb") as fh:
        size = os.fstat(fh.fileno()).st_size
        start = max(0, size - max_bytes)

        # The window is aligned when it starts the file or directly
        # follows a newline.
        aligned = True
        if start > 0:
            fh.seek(start - 1)
            aligned = fh.read(1) == NEWLINE

        fh.seek(start)
        buf = fh.read(max_bytes)

    if aligned:
        return buf

    index = buf.find(NEWLINE)
    if index == -1:
        return b""
    return buf[index + 1:]
