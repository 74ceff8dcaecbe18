"""Tests for index handles."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from swishprog.index.handle import IndexHandle, associated_files
from swishprog.models import IndexFormat


def _make(name: Path, suffixes=("", ".prop")) -> None:
    for suffix in suffixes:
        Path(str(name) + suffix).write_text(suffix or "index")


class TestAssociatedFiles:
    """File sets per format."""

    def test_native(self) -> None:
        """Native indexes have the index and its property file."""
        assert associated_files("a/idx", IndexFormat.NATIVE) == [Path("a/idx"), Path("a/idx.prop")]

    def test_incremental(self) -> None:
        """Incremental indexes have five more files."""
        files = associated_files("idx", "incremental")
        assert [f.name for f in files] == [
            "idx",
            "idx.prop",
            "idx.array",
            "idx.file",
            "idx.btree",
            "idx.psort",
            "idx.wdata",
        ]

    def test_property_matches_function(self) -> None:
        """The handle property is the pure function of name and format."""
        handle = IndexHandle(Path("x"), IndexFormat.INCREMENTAL)
        assert handle.associated_files == associated_files("x", IndexFormat.INCREMENTAL)


class TestRemove:
    """Removing index files."""

    def test_remove_all(self, tmp_path: Path) -> None:
        """Every associated file is deleted."""
        name = tmp_path / "idx"
        _make(name)
        handle = IndexHandle(name)

        assert handle.exists()
        assert handle.remove() is True
        assert not name.exists()
        assert not Path(str(name) + ".prop").exists()

    def test_missing_files_reported(self, tmp_path: Path, caplog) -> None:
        """Missing files make remove() return False unless allowed."""
        name = tmp_path / "idx"
        _make(name, ("",))

        assert IndexHandle(name).remove() is False
        assert "Can't unlink" in caplog.text

        _make(name, ("",))
        assert IndexHandle(name).remove(missing_ok=True) is True

    def test_continues_after_failure(self, tmp_path: Path) -> None:
        """A failing file does not stop removal of the others."""
        name = tmp_path / "idx"
        _make(name)
        real_unlink = Path.unlink

        def flaky(self, *args, **kwargs):
            if self.name == "idx":
                raise PermissionError("denied")
            return real_unlink(self, *args, **kwargs)

        with patch.object(Path, "unlink", flaky):
            assert IndexHandle(name).remove() is False
        assert name.exists()
        assert not Path(str(name) + ".prop").exists()


class TestRename:
    """Renaming index files."""

    def test_rename_repoints_handle(self, tmp_path: Path) -> None:
        """All files move and later operations use the new name."""
        old = tmp_path / "old"
        new = tmp_path / "new"
        _make(old)
        handle = IndexHandle(old)

        assert handle.rename(new) is True
        assert handle.name == new
        assert new.read_text() == "index"
        assert Path(str(new) + ".prop").read_text() == ".prop"
        assert not old.exists()

        assert handle.remove() is True
        assert not new.exists()

    def test_rename_replaces_existing(self, tmp_path: Path) -> None:
        """Existing target files are replaced."""
        src = tmp_path / "src"
        dst = tmp_path / "dst"
        _make(src)
        dst.write_text("stale")
        Path(str(dst) + ".prop").write_text("stale")

        assert IndexHandle(src).rename(dst) is True
        assert dst.read_text() == "index"

    def test_rename_missing(self, tmp_path: Path) -> None:
        """Nothing to move leaves the handle where it was."""
        handle = IndexHandle(tmp_path / "nothing")
        assert handle.rename(tmp_path / "other") is False
        assert handle.name == tmp_path / "nothing"
