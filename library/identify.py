"""Content identity for game files.

A game's identity is the SHA-1 of its full byte content together with its
size. The identity survives renames and moves, which is what lets a rescan
tell "file moved" apart from "file deleted and a new one added".
"""

import hashlib
from dataclasses import dataclass

from .exceptions import FileAccessError

CHUNK_SIZE = 1024 * 1024  # 1 MiB


@dataclass(frozen=True)
class ContentIdentity:
    checksum: str
    size: int


def identify(file_path: str) -> ContentIdentity:
    """
    Compute the content identity of a file.

    The whole file is read once in chunks, so memory use stays flat for
    multi-gigabyte game archives.

    Args:
        file_path: Path to the file

    Returns:
        ContentIdentity with the SHA-1 hex digest and number of bytes hashed

    Raises:
        FileAccessError: If the file cannot be opened or fails mid-read
    """
    digest = hashlib.sha1()
    size = 0
    try:
        with open(file_path, "rb") as f:
            while True:
                chunk = f.read(CHUNK_SIZE)
                if not chunk:
                    break
                digest.update(chunk)
                size += len(chunk)
    except OSError as e:
        raise FileAccessError(
            f"Cannot read {file_path}: {e.strerror or e}", path=file_path
        ) from e

    return ContentIdentity(checksum=digest.hexdigest(), size=size)
