"""Game directory scanner.

Walks the configured library roots and yields a FileDescriptor for every
game file found. Checksums are computed while walking, so the sequence is
lazy: nothing is hashed until the caller pulls the next descriptor.
"""

import fnmatch
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, Iterator, Optional

from django.conf import settings

from .identify import ContentIdentity, identify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileDescriptor:
    """A game file as seen on disk during one scan."""

    path: str
    size: int
    checksum: str
    modified_at: datetime


@dataclass(frozen=True)
class ScanFailure:
    """A path the scanner could not process."""

    path: str
    reason: str

    def as_dict(self) -> dict:
        return {"kind": "io_error", "path": self.path, "message": self.reason}


def get_library_roots() -> list[str]:
    """Get the configured library root directories."""
    return list(getattr(settings, "GAME_LIBRARY_ROOTS", []))


def get_ignore_patterns() -> list[str]:
    """Get the configured ignore patterns."""
    return list(getattr(settings, "GAME_IGNORE_PATTERNS", []))


def get_file_extensions() -> list[str]:
    """Get the configured extension allow-list (empty means everything)."""
    return list(getattr(settings, "GAME_FILE_EXTENSIONS", []))


def is_ignored(name: str, relative_path: str, patterns: Iterable[str]) -> bool:
    """
    Check if a file or directory matches any ignore pattern.

    Patterns are matched against the bare name ("*.tmp", ".*") and against
    the path relative to the scan root ("Incoming/*").

    Args:
        name: The entry name (e.g., "setup.exe.part")
        relative_path: Path relative to the root, using "/" separators
        patterns: fnmatch-style patterns

    Returns:
        True if the entry should be skipped
    """
    for pattern in patterns:
        if fnmatch.fnmatch(name, pattern) or fnmatch.fnmatch(relative_path, pattern):
            return True
    return False


def has_allowed_extension(name: str, extensions: Iterable[str]) -> bool:
    """Return True if the name ends with an allowed extension.

    An empty allow-list accepts everything. Matching uses endswith so
    compound extensions such as ".tar.gz" work.
    """
    extensions = list(extensions)
    if not extensions:
        return True
    lower = name.lower()
    return any(lower.endswith(ext) for ext in extensions)


class LibraryScanner:
    """Walks library roots and produces file descriptors.

    Per-file failures do not stop the walk; they are collected in
    ``failures`` for the caller to report once the scan is drained.
    """

    def __init__(
        self,
        roots: Iterable[str],
        ignore_patterns: Optional[Iterable[str]] = None,
        extensions: Optional[Iterable[str]] = None,
        identify_file: Callable[[str], ContentIdentity] = identify,
    ):
        self.roots = [os.path.abspath(root) for root in roots]
        self.ignore_patterns = list(
            get_ignore_patterns() if ignore_patterns is None else ignore_patterns
        )
        self.extensions = [
            ext.lower()
            for ext in (get_file_extensions() if extensions is None else extensions)
        ]
        self.identify_file = identify_file
        self.failures: list[ScanFailure] = []
        self.files_seen = 0

    @classmethod
    def from_settings(cls, roots: Optional[Iterable[str]] = None) -> "LibraryScanner":
        return cls(get_library_roots() if roots is None else roots)

    @property
    def failed_paths(self) -> set[str]:
        return {failure.path for failure in self.failures}

    def scan(self) -> Iterator[FileDescriptor]:
        """
        Walk every root and yield descriptors in traversal order.

        Each call starts a fresh walk and resets ``failures``.

        Yields:
            FileDescriptor for every readable regular file not ignored
        """
        self.failures = []
        self.files_seen = 0
        visited_dirs: set[str] = set()
        seen_files: set[str] = set()

        for root in self.roots:
            if not os.path.isdir(root):
                logger.error("Library root not found: %s", root)
                self.failures.append(ScanFailure(root, "Directory not found"))
                continue

            logger.info("Scanning library root: %s", root)
            yield from self._walk(root, root, visited_dirs, seen_files)

    def _walk(
        self,
        root: str,
        directory: str,
        visited_dirs: set[str],
        seen_files: set[str],
    ) -> Iterator[FileDescriptor]:
        real_dir = os.path.realpath(directory)
        if real_dir in visited_dirs:
            logger.debug("Skipped already visited directory: %s", directory)
            return
        visited_dirs.add(real_dir)

        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except OSError as e:
            logger.warning("Cannot list directory %s: %s", directory, e)
            self.failures.append(ScanFailure(directory, str(e)))
            return

        for entry in entries:
            relative_path = os.path.relpath(entry.path, root).replace(os.sep, "/")
            if is_ignored(entry.name, relative_path, self.ignore_patterns):
                logger.debug("Skipped ignored path: %s", entry.path)
                continue

            try:
                if entry.is_dir(follow_symlinks=True):
                    yield from self._walk(root, entry.path, visited_dirs, seen_files)
                    continue
                is_regular = entry.is_file(follow_symlinks=True)
            except OSError as e:
                self.failures.append(ScanFailure(entry.path, str(e)))
                continue

            if not is_regular:
                logger.debug("Skipped non-regular file: %s", entry.path)
                continue

            if not has_allowed_extension(entry.name, self.extensions):
                logger.debug("Skipped unsupported extension: %s", entry.path)
                continue

            real_file = os.path.realpath(entry.path)
            if real_file in seen_files:
                logger.debug("Skipped file reached twice: %s", entry.path)
                continue
            seen_files.add(real_file)

            descriptor = self._describe(entry.path)
            if descriptor is not None:
                self.files_seen += 1
                yield descriptor

    def _describe(self, file_path: str) -> Optional[FileDescriptor]:
        try:
            modified = os.stat(file_path).st_mtime
            identity = self.identify_file(file_path)
        except OSError as e:
            logger.warning("Cannot identify %s: %s", file_path, e)
            self.failures.append(ScanFailure(file_path, str(e)))
            return None

        return FileDescriptor(
            path=file_path,
            size=identity.size,
            checksum=identity.checksum,
            modified_at=datetime.fromtimestamp(modified, tz=timezone.utc),
        )
