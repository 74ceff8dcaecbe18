"""Tests for file utility functions."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from swishprog.utils.files import (
    DEFAULT_EXT_RE,
    MimeTypeCache,
    extension_pattern,
    path_parts,
    walk_paths,
)


def _accept_all(path: Path) -> bool:
    return True


class TestWalkPaths:
    """Test walk_paths traversal."""

    def test_explicit_files_first(self, tmp_path: Path) -> None:
        """Files given on the command line come before directory contents."""
        docs = tmp_path / "docs"
        docs.mkdir()
        (docs / "a.txt").write_text("a")
        single = tmp_path / "z.txt"
        single.write_text("z")

        paths = [path for path, _stat in walk_paths([docs, single], _accept_all)]

        assert paths == [single, docs / "a.txt"]

    def test_sorted_depth_first(self, tmp_path: Path) -> None:
        """Entries are visited in name order, depth-first."""
        (tmp_path / "b").mkdir()
        (tmp_path / "b" / "inner.txt").write_text("i")
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "c.txt").write_text("c")

        names = [path.relative_to(tmp_path).as_posix() for path, _ in walk_paths([tmp_path], _accept_all)]

        assert names == ["a.txt", "b/inner.txt", "c.txt"]

    def test_rejected_directory_pruned(self, tmp_path: Path) -> None:
        """dir_ok False skips the directory and everything below it."""
        (tmp_path / "skip" / "deep").mkdir(parents=True)
        (tmp_path / "skip" / "deep" / "x.txt").write_text("x")
        (tmp_path / "keep.txt").write_text("k")

        paths = list(walk_paths([tmp_path], lambda p: p.name != "skip"))

        assert [path.name for path, _ in paths] == ["keep.txt"]

    def test_root_checked_by_dir_ok(self, tmp_path: Path) -> None:
        """Root directories are filtered too."""
        (tmp_path / "a.txt").write_text("a")
        assert list(walk_paths([tmp_path], lambda p: False)) == []

    def test_stat_snapshot_yielded(self, tmp_path: Path) -> None:
        """Each file comes with its stat result."""
        target = tmp_path / "a.txt"
        target.write_text("hello")
        [(path, stat)] = list(walk_paths([tmp_path], _accept_all))
        assert stat.st_size == 5

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlinked_directories(self, tmp_path: Path) -> None:
        """Symlinked directories are followed only on request, without loops."""
        real = tmp_path / "real"
        real.mkdir()
        (real / "a.txt").write_text("a")
        (real / "loop").symlink_to(real, target_is_directory=True)
        root = tmp_path / "root"
        root.mkdir()
        (root / "link").symlink_to(real, target_is_directory=True)

        assert list(walk_paths([root], _accept_all)) == []

        followed = [path.name for path, _ in walk_paths([root], _accept_all, follow_symlinks=True)]
        assert followed == ["a.txt"]

    def test_missing_file_logged(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        """Unstattable inputs are skipped with a warning."""
        assert list(walk_paths([tmp_path / "missing.txt"], _accept_all)) == []
        assert "Cannot stat" in caplog.text


class TestExtensions:
    """Extension matching."""

    def test_default_pattern(self) -> None:
        """The default list covers common document types, compressed or not."""
        assert path_parts(Path("a/b.HTML"))[2] == "HTML"
        assert path_parts(Path("a/b.txt.gz"))[2] == "txt.gz"
        assert path_parts(Path("a/b.exe"))[2] is None

    def test_custom_extensions(self) -> None:
        """Configured extensions replace the default list."""
        pattern = extension_pattern(["md", ".RST"])
        assert path_parts(Path("x.md"), pattern)[2] == "md"
        assert path_parts(Path("x.rst"), pattern)[2] == "rst"
        assert path_parts(Path("x.html"), pattern)[2] is None

    def test_empty_extensions_fall_back(self) -> None:
        """No extensions means the default pattern."""
        assert extension_pattern([]) is DEFAULT_EXT_RE


class TestMimeTypeCache:
    """Per-extension MIME lookups."""

    def test_lookup(self) -> None:
        """Known extensions resolve through mimetypes."""
        cache = MimeTypeCache()
        assert cache.lookup(Path("a.html"), "html") == "text/html"
        assert cache.lookup(Path("a.xyzunknown"), "xyzunknown") == "application/octet-stream"

    def test_memoised_per_extension(self) -> None:
        """Each extension is guessed once."""
        cache = MimeTypeCache()
        with patch("swishprog.utils.files.mimetypes.guess_type", return_value=("text/plain", None)) as guess:
            cache.lookup(Path("a.txt"), "txt")
            cache.lookup(Path("b.txt"), "TXT")
        assert guess.call_count == 1
        assert len(cache) == 1

    def test_encoding(self) -> None:
        """Compressed files report their encoding."""
        cache = MimeTypeCache()
        assert cache.lookup(Path("a.html.gz"), "html.gz") == "text/html"
        assert cache.encoding(Path("a.html.gz")) == "gzip"
        assert cache.encoding(Path("a.html")) is None
