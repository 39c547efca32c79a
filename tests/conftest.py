"""Pytest configuration and shared fixtures for Django tests."""

import os
from pathlib import Path

import django
import pytest


def pytest_configure(config):
    """Configure Django settings before running tests."""
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "gamevault.settings")
    django.setup()


# -----------------------------------------------------------------------------
# Filesystem helpers
# -----------------------------------------------------------------------------


def write_game_file(path: Path, content: bytes) -> Path:
    """Write a fake game file, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


@pytest.fixture
def library_root(tmp_path):
    """An empty library root directory."""
    root = tmp_path / "games"
    root.mkdir()
    return root


@pytest.fixture
def populated_root(library_root):
    """A library root with a few games in nested folders."""
    write_game_file(library_root / "Celeste (v1.4) (2018).zip", b"celeste" * 100)
    write_game_file(library_root / "Indie" / "Hades (EA).7z", b"hades" * 200)
    write_game_file(library_root / "Indie" / "Deep" / "Tunic.zip", b"tunic" * 50)
    return library_root
