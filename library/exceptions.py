"""Structured errors raised by the indexing and download engine.

Every error carries a ``kind`` plus the offending path and/or game id so the
HTTP and CLI layers can report it without re-deriving context.
"""

from typing import Optional


class LibraryError(Exception):
    """Base class for library engine errors."""

    kind = "library_error"

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        game_id: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.path = path
        self.game_id = game_id

    def as_dict(self) -> dict:
        data = {"kind": self.kind, "message": self.message}
        if self.path is not None:
            data["path"] = self.path
        if self.game_id is not None:
            data["game_id"] = self.game_id
        return data


class FileAccessError(LibraryError, OSError):
    """Raised when a game file is unreadable or vanished from disk.

    Retryable: the registry is out of date and a reindex will fix it.
    """

    kind = "io_error"


class NotFoundError(LibraryError):
    """Raised when a game id is unknown or has been soft-deleted."""

    kind = "not_found"


class RangeNotSatisfiable(LibraryError):
    """Raised for an explicit Range header that cannot be served."""

    kind = "range_not_satisfiable"

    def __init__(self, message: str, header: str = "", file_size: int = 0):
        super().__init__(message)
        self.header = header
        self.file_size = file_size

    def as_dict(self) -> dict:
        data = super().as_dict()
        data["range"] = self.header
        data["file_size"] = self.file_size
        return data


class DuplicateContentError(LibraryError):
    """Two files in the library have identical content.

    The first-seen file is kept; ``path`` is the one that lost.
    """

    kind = "duplicate_content"

    def __init__(self, path: str, kept_path: str, checksum: str):
        super().__init__(
            f"{path} has the same content as {kept_path}", path=path
        )
        self.kept_path = kept_path
        self.checksum = checksum

    def as_dict(self) -> dict:
        data = super().as_dict()
        data["kept_path"] = self.kept_path
        data["checksum"] = self.checksum
        return data


class StoreWriteError(LibraryError):
    """A single registry mutation could not be written."""

    kind = "store_write_error"

    def __init__(self, mutation, cause: Exception):
        super().__init__(
            f"{mutation.action} failed for {mutation.path}: {cause}",
            path=mutation.path,
            game_id=mutation.game_id,
        )
        self.mutation = mutation
        self.cause = cause

    def as_dict(self) -> dict:
        data = super().as_dict()
        data["action"] = self.mutation.action
        return data


class ReindexInProgress(LibraryError):
    """Raised when a reindex is requested while another one is running."""

    kind = "reindex_in_progress"


class StreamCancelled(LibraryError):
    """Raised inside a throttled stream after it has been closed."""

    kind = "stream_cancelled"
