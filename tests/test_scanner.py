"""Tests for the library scanner."""

import hashlib
import os
from unittest.mock import MagicMock

import pytest

from library.exceptions import FileAccessError
from library.identify import identify
from library.scanner import (
    FileDescriptor,
    LibraryScanner,
    has_allowed_extension,
    is_ignored,
)

from .conftest import write_game_file

needs_symlinks = pytest.mark.skipif(
    not hasattr(os, "symlink") or os.name == "nt", reason="requires POSIX symlinks"
)


def scan_paths(scanner: LibraryScanner) -> list[str]:
    return [descriptor.path for descriptor in scanner.scan()]


# -----------------------------------------------------------------------------
# Tests for is_ignored / has_allowed_extension
# -----------------------------------------------------------------------------


class TestIsIgnored:
    """Tests for is_ignored function."""

    @pytest.mark.parametrize(
        "name,relative_path,expected",
        [
            (".hidden", ".hidden", True),
            ("setup.exe.part", "Indie/setup.exe.part", True),
            ("Thumbs.db", "Thumbs.db", True),
            ("Incoming", "Incoming", True),
            ("game.zip", "Incoming/game.zip", True),
            ("game.zip", "Indie/game.zip", False),
            ("Celeste.zip", "Celeste.zip", False),
        ],
    )
    def test_patterns(self, name, relative_path, expected):
        patterns = [".*", "*.part", "Thumbs.db", "Incoming", "Incoming/*"]
        assert is_ignored(name, relative_path, patterns) is expected

    def test_no_patterns(self):
        assert is_ignored(".hidden", ".hidden", []) is False


class TestHasAllowedExtension:
    """Tests for has_allowed_extension function."""

    @pytest.mark.parametrize(
        "name,extensions,expected",
        [
            ("game.zip", [], True),
            ("game.zip", [".zip", ".7z"], True),
            ("GAME.ZIP", [".zip"], True),
            ("game.rar", [".zip", ".7z"], False),
            ("game.tar.gz", [".tar.gz"], True),
            ("readme", [".zip"], False),
        ],
    )
    def test_extensions(self, name, extensions, expected):
        assert has_allowed_extension(name, extensions) is expected


# -----------------------------------------------------------------------------
# Tests for LibraryScanner.scan
# -----------------------------------------------------------------------------


class TestLibraryScanner:
    """Tests for LibraryScanner."""

    def test_yields_descriptors(self, populated_root):
        scanner = LibraryScanner([str(populated_root)], ignore_patterns=[])

        descriptors = list(scanner.scan())

        assert len(descriptors) == 3
        assert all(isinstance(d, FileDescriptor) for d in descriptors)
        celeste = next(d for d in descriptors if d.path.endswith("(2018).zip"))
        assert celeste.size == len(b"celeste" * 100)
        assert celeste.checksum == hashlib.sha1(b"celeste" * 100).hexdigest()
        assert celeste.modified_at.tzinfo is not None
        assert scanner.files_seen == 3
        assert scanner.failures == []

    def test_traversal_order_is_deterministic(self, populated_root):
        scanner = LibraryScanner([str(populated_root)], ignore_patterns=[])

        paths = scan_paths(scanner)

        assert paths == [
            str(populated_root / "Celeste (v1.4) (2018).zip"),
            str(populated_root / "Indie" / "Deep" / "Tunic.zip"),
            str(populated_root / "Indie" / "Hades (EA).7z"),
        ]
        assert scan_paths(scanner) == paths

    def test_sequence_is_lazy(self, populated_root):
        identify_file = MagicMock(side_effect=identify)
        scanner = LibraryScanner(
            [str(populated_root)], ignore_patterns=[], identify_file=identify_file
        )

        iterator = scanner.scan()
        assert identify_file.call_count == 0

        next(iterator)
        assert identify_file.call_count == 1

    def test_ignore_patterns(self, populated_root):
        write_game_file(populated_root / ".DS_Store", b"junk")
        write_game_file(populated_root / "download.zip.part", b"partial")
        write_game_file(populated_root / "Incoming" / "new.zip", b"incoming")
        scanner = LibraryScanner(
            [str(populated_root)], ignore_patterns=[".*", "*.part", "Incoming"]
        )

        paths = scan_paths(scanner)

        assert len(paths) == 3
        assert not any("Incoming" in path or ".part" in path for path in paths)

    def test_extension_allow_list(self, populated_root):
        scanner = LibraryScanner(
            [str(populated_root)], ignore_patterns=[], extensions=[".ZIP"]
        )

        paths = scan_paths(scanner)

        assert len(paths) == 2
        assert all(path.endswith(".zip") for path in paths)

    def test_multiple_roots(self, tmp_path):
        first = tmp_path / "first"
        second = tmp_path / "second"
        write_game_file(first / "a.zip", b"a")
        write_game_file(second / "b.zip", b"b")
        scanner = LibraryScanner([str(first), str(second)], ignore_patterns=[])

        assert scan_paths(scanner) == [str(first / "a.zip"), str(second / "b.zip")]

    def test_missing_root_is_reported(self, tmp_path, populated_root):
        missing = tmp_path / "nope"
        scanner = LibraryScanner(
            [str(missing), str(populated_root)], ignore_patterns=[]
        )

        paths = scan_paths(scanner)

        assert len(paths) == 3
        assert [f.path for f in scanner.failures] == [str(missing)]

    def test_unreadable_file_is_collected(self, populated_root):
        bad_path = str(populated_root / "Indie" / "Hades (EA).7z")

        def flaky_identify(path):
            if path == bad_path:
                raise FileAccessError(f"Cannot read {path}", path=path)
            return identify(path)

        scanner = LibraryScanner(
            [str(populated_root)], ignore_patterns=[], identify_file=flaky_identify
        )

        paths = scan_paths(scanner)

        assert bad_path not in paths
        assert len(paths) == 2
        assert scanner.failed_paths == {bad_path}
        assert scanner.failures[0].as_dict()["kind"] == "io_error"

    def test_unlistable_directory_is_reported(self, populated_root, monkeypatch):
        indie = str(populated_root / "Indie")
        real_scandir = os.scandir

        def flaky_scandir(path):
            if os.fspath(path) == indie:
                raise PermissionError(13, "Permission denied", indie)
            return real_scandir(path)

        monkeypatch.setattr("library.scanner.os.scandir", flaky_scandir)
        scanner = LibraryScanner([str(populated_root)], ignore_patterns=[])

        paths = scan_paths(scanner)

        assert paths == [str(populated_root / "Celeste (v1.4) (2018).zip")]
        assert scanner.failed_paths == {indie}

    def test_rescan_resets_failures(self, tmp_path):
        missing = tmp_path / "nope"
        scanner = LibraryScanner([str(missing)], ignore_patterns=[])
        list(scanner.scan())
        list(scanner.scan())
        assert len(scanner.failures) == 1

    @needs_symlinks
    def test_symlink_cycle_is_skipped(self, populated_root):
        os.symlink(populated_root, populated_root / "Indie" / "loop")
        scanner = LibraryScanner([str(populated_root)], ignore_patterns=[])

        paths = scan_paths(scanner)

        assert len(paths) == 3

    @needs_symlinks
    def test_file_linked_twice_is_reported_once(self, populated_root):
        os.symlink(
            populated_root / "Indie" / "Deep" / "Tunic.zip",
            populated_root / "Tunic link.zip",
        )
        scanner = LibraryScanner([str(populated_root)], ignore_patterns=[])

        paths = scan_paths(scanner)

        assert len(paths) == 3

    @needs_symlinks
    def test_broken_symlink_is_skipped(self, populated_root):
        os.symlink(populated_root / "missing.zip", populated_root / "broken.zip")
        scanner = LibraryScanner([str(populated_root)], ignore_patterns=[])

        assert len(scan_paths(scanner)) == 3
        assert scanner.failures == []

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="requires mkfifo")
    def test_fifo_is_skipped(self, populated_root):
        os.mkfifo(populated_root / "pipe.zip")
        scanner = LibraryScanner([str(populated_root)], ignore_patterns=[])

        assert len(scan_paths(scanner)) == 3

    def test_nested_roots_are_walked_once(self, populated_root):
        scanner = LibraryScanner(
            [str(populated_root), str(populated_root / "Indie")], ignore_patterns=[]
        )

        assert len(scan_paths(scanner)) == 3
