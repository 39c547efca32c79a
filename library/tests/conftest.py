"""Shared fixtures for library engine tests."""

import hashlib
from datetime import datetime, timezone
from pathlib import Path

import pytest

from library.scanner import FileDescriptor


def make_descriptor(path, content: bytes = b"data") -> FileDescriptor:
    """Build a descriptor for content without touching the disk."""
    return FileDescriptor(
        path=str(path),
        size=len(content),
        checksum=hashlib.sha1(content).hexdigest(),
        modified_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


def write_file(path: Path, content: bytes) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


@pytest.fixture
def descriptor_factory():
    return make_descriptor


@pytest.fixture
def game_root(tmp_path, settings):
    """Library root configured as the only GAME_LIBRARY_ROOTS entry."""
    root = tmp_path / "library"
    root.mkdir()
    settings.GAME_LIBRARY_ROOTS = [str(root)]
    settings.GAME_IGNORE_PATTERNS = [".*", "*.part"]
    settings.GAME_FILE_EXTENSIONS = []
    settings.DOWNLOAD_SPEED_LIMIT_KIBPS = 0
    return root


@pytest.fixture
def write_game(game_root):
    """Write a file under the library root and return its path."""

    def _write(relative_path: str, content: bytes) -> Path:
        return write_file(game_root / relative_path, content)

    return _write
