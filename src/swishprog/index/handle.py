"""On-disk index handles and their associated file sets."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from swishprog.models import IndexFormat

LOGGER = logging.getLogger(__name__)

SUFFIXES: dict[IndexFormat, tuple[str, ...]] = {
    IndexFormat.NATIVE: ("", ".prop"),
    IndexFormat.INCREMENTAL: ("", ".prop", ".array", ".file", ".btree", ".psort", ".wdata"),
}


def associated_files(name: Path | str, index_format: IndexFormat | str) -> list[Path]:
    """Return every file belonging to the index ``name`` in ``index_format``."""
    base = str(name)
    return [Path(base + suffix) for suffix in SUFFIXES[IndexFormat(index_format)]]


@dataclass(slots=True)
class IndexHandle:
    """Logical handle for one index and its file set.

    Files are created by the external indexer; the handle only renames and
    removes them.
    """

    name: Path
    format: IndexFormat = IndexFormat.NATIVE

    def __post_init__(self) -> None:
        self.name = Path(self.name)
        self.format = IndexFormat(self.format)

    @property
    def associated_files(self) -> list[Path]:
        return associated_files(self.name, self.format)

    def exists(self) -> bool:
        return Path(self.name).exists()

    def remove(self, *, missing_ok: bool = False) -> bool:
        """Delete all associated files.

        Every file is attempted; failures are logged as warnings and the
        return value is False if any file could not be removed.
        """
        ok = True
        for path in self.associated_files:
            try:
                path.unlink()
            except FileNotFoundError:
                if missing_ok:
                    continue
                LOGGER.warning("Can't unlink %s: file does not exist", path)
                ok = False
            except OSError as exc:
                LOGGER.warning("Can't unlink %s: %s", path, exc)
                ok = False
        return ok

    def rename(self, new_name: Path | str) -> bool:
        """Rename every associated file to ``new_name`` plus its suffix.

        Failures are collected like ``remove``. The handle points at the new
        name afterwards unless no file could be moved at all.
        """
        new_name = Path(new_name)
        moved = 0
        failed = 0
        for suffix in SUFFIXES[self.format]:
            src = Path(str(self.name) + suffix)
            dst = Path(str(new_name) + suffix)
            try:
                os.replace(src, dst)
                moved += 1
            except OSError as exc:
                LOGGER.warning("Can't rename %s to %s: %s", src, dst, exc)
                failed += 1
        if moved:
            self.name = new_name
        return failed == 0
