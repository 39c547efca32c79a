"""HTTP Range header resolution.

Only single byte ranges are served. A header that does not look like a byte
range at all degrades to a full download; a well-formed range that cannot be
served (out of bounds, reversed, or several ranges) is rejected with
RangeNotSatisfiable so the client gets a 416.
"""

import re
from dataclasses import dataclass
from typing import Optional

from .exceptions import RangeNotSatisfiable

SINGLE_RANGE_PATTERN = re.compile(r"^bytes\s*=\s*(\d*)\s*-\s*(\d*)$", re.IGNORECASE)

# "bytes=" followed by comma separated range specs
MULTI_RANGE_PATTERN = re.compile(
    r"^bytes\s*=\s*\d*\s*-\s*\d*(\s*,\s*\d*\s*-\s*\d*)+$", re.IGNORECASE
)

# Longest accepted offset; 2**63 - 1 has 19 digits
MAX_OFFSET_DIGITS = 19


@dataclass(frozen=True)
class ByteInterval:
    """Inclusive byte range [start, end] of a file."""

    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1

    def is_full(self, file_size: int) -> bool:
        return self.start == 0 and self.end == file_size - 1

    def content_range(self, file_size: int) -> str:
        return f"bytes {self.start}-{self.end}/{file_size}"


def full_interval(file_size: int) -> ByteInterval:
    """Interval covering the whole file. Empty files give ByteInterval(0, -1)."""
    return ByteInterval(0, file_size - 1)


def resolve(header: Optional[str], file_size: int) -> ByteInterval:
    """
    Resolve a Range header against a file size.

    Supported forms:
        bytes=<start>-<end>   explicit range, both ends inclusive
        bytes=<start>-        from start to end of file
        bytes=-<suffix>       last <suffix> bytes

    Args:
        header: Raw Range header value, or None
        file_size: Current size of the file in bytes

    Returns:
        ByteInterval to serve

    Raises:
        RangeNotSatisfiable: For out-of-bounds, reversed or multi-range requests
    """
    if not header:
        return full_interval(file_size)

    header = header.strip()

    if MULTI_RANGE_PATTERN.match(header):
        raise _unsatisfiable("Multiple ranges are not supported", header, file_size)

    match = SINGLE_RANGE_PATTERN.match(header)
    if not match:
        return full_interval(file_size)

    start_text, end_text = match.groups()
    if not start_text and not end_text:
        # "bytes=-" carries no range at all
        return full_interval(file_size)

    if len(start_text) > MAX_OFFSET_DIGITS or len(end_text) > MAX_OFFSET_DIGITS:
        raise _unsatisfiable("Range offset too large", header[:64], file_size)

    if not start_text:
        suffix_length = int(end_text)
        if suffix_length == 0 or file_size == 0:
            raise _unsatisfiable("Empty suffix range", header, file_size)
        return ByteInterval(max(0, file_size - suffix_length), file_size - 1)

    start = int(start_text)
    if start >= file_size:
        raise _unsatisfiable("Range starts beyond end of file", header, file_size)

    if not end_text:
        return ByteInterval(start, file_size - 1)

    end = int(end_text)
    if end < start:
        raise _unsatisfiable("Range end precedes start", header, file_size)
    if end >= file_size:
        raise _unsatisfiable("Range ends beyond end of file", header, file_size)

    return ByteInterval(start, end)


def _unsatisfiable(reason: str, header: str, file_size: int) -> RangeNotSatisfiable:
    return RangeNotSatisfiable(
        f"{reason}: {header!r} (file size {file_size})",
        header=header,
        file_size=file_size,
    )
