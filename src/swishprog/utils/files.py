"""Utility helpers for walking and classifying files."""

from __future__ import annotations

import logging
import mimetypes
import os
import re
from pathlib import Path
from typing import Callable, Iterable, Iterator

LOGGER = logging.getLogger(__name__)

DEFAULT_EXT_RE = re.compile(r"\.((?:html|htm|xml|txt|pdf|ps|doc|ppt|xls|mp3)(?:\.gz)?)$", re.I)
DEFAULT_MIME_TYPE = "application/octet-stream"

FileEntry = tuple[Path, os.stat_result]


def extension_pattern(extensions: Iterable[str]) -> re.Pattern[str]:
    """Build a case-insensitive regex matching any of ``extensions`` at the end of a name."""
    cleaned = sorted({ext.lstrip(".").lower() for ext in extensions if ext.strip(".")})
    if not cleaned:
        return DEFAULT_EXT_RE
    return re.compile(r"\.(" + "|".join(re.escape(ext) for ext in cleaned) + r")$", re.I)


def path_parts(path: Path, ext_re: re.Pattern[str] = DEFAULT_EXT_RE) -> tuple[Path, str, str | None]:
    """Split ``path`` into (parent, file name, matched extension or None)."""
    match = ext_re.search(path.name)
    return path.parent, path.name, match.group(1) if match else None


def walk_paths(
    inputs: Iterable[Path],
    dir_ok: Callable[[Path], bool],
    *,
    follow_symlinks: bool = False,
) -> Iterator[FileEntry]:
    """Yield ``(path, stat)`` for files under the input paths.

    Explicit files come first, then each explicit directory is walked
    depth-first in name order. A directory rejected by ``dir_ok`` is pruned
    with everything below it. Every file is stat'ed exactly once.
    """
    paths = [Path(item) for item in inputs]
    dirs = [path for path in paths if path.is_dir()]
    files = [path for path in paths if not path.is_dir()]

    for path in files:
        try:
            yield path, path.stat()
        except OSError as exc:
            LOGGER.warning("Cannot stat %s: %s", path, exc)

    seen: set[tuple[int, int]] = set()
    for root in dirs:
        if not dir_ok(root):
            LOGGER.debug("Skipping directory %s", root)
            continue
        yield from _walk_dir(root, dir_ok, follow_symlinks, seen)


def _walk_dir(
    directory: Path,
    dir_ok: Callable[[Path], bool],
    follow_symlinks: bool,
    seen: set[tuple[int, int]],
) -> Iterator[FileEntry]:
    try:
        stat = directory.stat()
    except OSError as exc:
        LOGGER.warning("Cannot stat directory %s: %s", directory, exc)
        return
    key = (stat.st_dev, stat.st_ino)
    if key in seen:
        LOGGER.debug("Already visited %s", directory)
        return
    seen.add(key)

    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda entry: entry.name)
    except OSError as exc:
        LOGGER.warning("Cannot read directory %s: %s", directory, exc)
        return

    for entry in entries:
        path = Path(entry.path)
        try:
            is_dir = entry.is_dir(follow_symlinks=True)
        except OSError:
            is_dir = False
        if is_dir:
            if entry.is_symlink() and not follow_symlinks:
                LOGGER.debug("Not following symlinked directory %s", path)
                continue
            if not dir_ok(path):
                LOGGER.debug("Skipping directory %s", path)
                continue
            yield from _walk_dir(path, dir_ok, follow_symlinks, seen)
            continue
        try:
            yield path, path.stat()
        except OSError as exc:
            LOGGER.warning("Cannot stat %s: %s", path, exc)


class MimeTypeCache:
    """Extension to MIME type lookups, memoised per instance."""

    def __init__(self, default: str = DEFAULT_MIME_TYPE) -> None:
        self.default = default
        self._by_ext: dict[str, str] = {}

    def lookup(self, path: Path | str, ext: str | None = None) -> str:
        if ext:
            key = ext.lower()
            if key not in self._by_ext:
                self._by_ext[key] = self._guess(path)
            return self._by_ext[key]
        return self._guess(path)

    def _guess(self, path: Path | str) -> str:
        mime_type, _encoding = mimetypes.guess_type(str(path), strict=False)
        return mime_type or self.default

    def encoding(self, path: Path | str) -> str | None:
        """Content encoding implied by the file name, such as ``gzip``."""
        _mime_type, encoding = mimetypes.guess_type(str(path), strict=False)
        return encoding

    def __len__(self) -> int:
        return len(self._by_ext)
