"""Filesystem aggregator, similar to DirTree.pl from the Swish-e distribution."""

from __future__ import annotations

import gzip
import logging
import os
import stat as stat_module
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Sequence

from swishprog.exceptions import ContentFilterError
from swishprog.index.indexer import Indexer
from swishprog.ingestion.base import Aggregator
from swishprog.ingestion.rules import RuleSet
from swishprog.models import Document, ParserType, parser_for
from swishprog.utils.files import MimeTypeCache, extension_pattern, path_parts, walk_paths
from swishprog.utils.text import html_title

LOGGER = logging.getLogger(__name__)

VCS_DIRS = frozenset({".svn", "RCS", "CVS", ".git", ".hg", ".bzr"})


@dataclass(slots=True)
class FileItem:
    """A candidate file with the stat snapshot taken when it was found."""

    path: Path
    stat: os.stat_result
    ext: str | None = None

    def __str__(self) -> str:
        return str(self.path)


def _is_hidden(name: str) -> bool:
    return name.startswith(".") and name not in (".", "..")


class FSAggregator(Aggregator):
    """Crawl directory trees and index the files that pass ``file_ok``."""

    def __init__(self, indexer: Indexer | None = None, **kwargs: Any) -> None:
        super().__init__(indexer, **kwargs)
        self.rules = RuleSet(self.config.file_rules)
        self.ext_re = extension_pattern(self.config.include_extensions)
        self.mime_types = MimeTypeCache()
        self._paths: list[Path] = []
        self._configure_indexer()

    def dir_ok(self, directory: Path) -> bool:
        name = Path(directory).name
        if _is_hidden(name) or name in VCS_DIRS:
            return False
        if self.rules.is_excluded(directory, is_dir=True):
            return False
        return True

    def file_ok(self, item: FileItem) -> str | None:
        """Return the file's extension if it should be indexed, else None."""
        path = item.path
        LOGGER.debug("checking file %s", path)
        _parent, name, ext = path_parts(path, self.ext_re)
        if not ext:
            return None
        if any(part in VCS_DIRS for part in path.parts[:-1]):
            return None
        if _is_hidden(name):
            return None
        if stat_module.S_ISDIR(item.stat.st_mode):
            return None
        if not os.access(path, os.R_OK):
            return None
        if self.rules.is_excluded(path, is_dir=False):
            return None
        LOGGER.debug("  %s -> ok", path)
        return ext

    def items(self) -> Iterator[FileItem]:
        for path, stat in walk_paths(
            self._paths, self.dir_ok, follow_symlinks=self.config.follow_symlinks
        ):
            yield FileItem(path, stat)

    def is_eligible(self, item: FileItem) -> bool:
        item.ext = self.file_ok(item)
        return item.ext is not None

    def read_content(self, path: Path) -> tuple[bytes, bool]:
        """Read ``path``, gunzipping ``.gz`` files. Returns (content, decompressed)."""
        data = path.read_bytes()
        if self.mime_types.encoding(path) != "gzip":
            return data, False
        try:
            return gzip.decompress(data), True
        except (OSError, EOFError, zlib.error) as exc:
            raise ContentFilterError(f"Cannot decompress {path}: {exc}") from exc

    def to_document(self, item: FileItem) -> Document | None:
        path = item.path
        content, decompressed = self.read_content(path)
        mime_type = self.mime_types.lookup(path, item.ext)
        parser = parser_for(mime_type)

        result = self.filter_content(content, mime_type, str(path))
        if result is not None:
            if self.filter_failed(result):
                LOGGER.warning("skipping %s - filtering error", path)
                return None
            content = result.content
            if self.config.strict and result.parser_hint is not None:
                parser = result.parser_hint

        title = None
        if parser in (ParserType.HTML, ParserType.XML):
            title = html_title(content)
        if self.rules.title_excluded(title):
            LOGGER.debug("skipping %s - title %r excluded", path, title)
            return None

        return self.make_document(
            url=str(path),
            content=content,
            mime_type=mime_type,
            parser_hint=parser,
            mod_time=int(item.stat.st_mtime),
            title=title,
            declared_size=item.stat.st_size if result is None and not decompressed else None,
        )

    def crawl(self, *paths: Path | str) -> int:
        """Index everything under ``paths``; returns the number of documents."""
        self._paths = [Path(path) for path in paths]
        return self.run()


def find(paths: Sequence[Path | str], indexer: Indexer, **kwargs: Any) -> int:
    """Crawl ``paths`` with a default FSAggregator."""
    return FSAggregator(indexer, **kwargs).crawl(*paths)
