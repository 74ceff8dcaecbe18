"""Lifecycle of the external swish-e indexer process."""

from __future__ import annotations

import logging
import os
import secrets
import shlex
import subprocess
import threading
from enum import Enum
from pathlib import Path
from typing import IO, TYPE_CHECKING, Iterable, Union

from swishprog.config import AppConfig
from swishprog.exceptions import IndexerError
from swishprog.headers import HeaderFramer
from swishprog.index.handle import IndexHandle
from swishprog.models import IndexFormat
from swishprog.settings import Settings

if TYPE_CHECKING:
    from swishprog.models import Document

LOGGER = logging.getLogger(__name__)

# swish-e exits with this status when it was given no documents.
NO_DOCUMENTS_EXIT = 1

# Merging many indexes at once opens several files per index.
MERGE_FD_WARNING_THRESHOLD = 60


class IndexerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    CLOSED = "closed"


IndexSource = Union[str, Path, IndexHandle, "SwishIndexer"]


def _source_name(source: IndexSource) -> str:
    if isinstance(source, SwishIndexer):
        return str(source.handle.name)
    if isinstance(source, IndexHandle):
        return str(source.name)
    return str(source)


def _drain(stream: IO[bytes], command: str) -> None:
    for line in iter(stream.readline, b""):
        LOGGER.debug("[%s] %s", command, line.decode("utf-8", errors="replace").rstrip())
    stream.close()


class SwishIndexer:
    """Drive one ``swish-e -S prog -i stdin`` process for one index.

    The indexer moves from IDLE to RUNNING on ``start()`` and to CLOSED on
    ``close()``. Framed documents are written to the process's stdin.
    Merge and add operations work on the index files rather than on the
    running process.
    """

    def __init__(
        self,
        name: Path | str | None = None,
        *,
        config: AppConfig | None = None,
        settings: Settings | None = None,
        handle: IndexHandle | None = None,
    ) -> None:
        self.config = config or AppConfig()
        self.settings = settings if settings is not None else Settings()
        if handle is None:
            handle = IndexHandle(
                Path(name) if name is not None else self.config.resolve_index_path(),
                self.config.index_format,
            )
        self.handle = handle
        self.state = IndexerState.IDLE
        self._proc: subprocess.Popen[bytes] | None = None
        self._reader: threading.Thread | None = None
        self._command: list[str] = []

    @property
    def name(self) -> Path:
        return self.handle.name

    @property
    def debug(self) -> bool:
        return self.config.debug

    def _base_command(self) -> list[str]:
        return [
            str(self.config.exe),
            *shlex.split(self.config.opts or ""),
        ]

    def _level_flags(self) -> list[str]:
        return [f"-v{self.config.verbose}", f"-W{self.config.warnings}"]

    def command(self) -> list[str]:
        """Command line used to start the indexer."""
        cmd = [
            *self._base_command(),
            "-f",
            str(self.handle.name),
            *self._level_flags(),
            "-S",
            "prog",
            "-i",
            "stdin",
        ]
        if self.settings.file is not None:
            cmd += ["-c", str(self.settings.file)]
        return cmd

    def start(self) -> "SwishIndexer":
        if self.state is not IndexerState.IDLE:
            raise IndexerError(f"Cannot start indexer for {self.name}: state is {self.state.value}")

        if self.settings and self.settings.file is None:
            self.settings.write()

        self._command = self.command()
        printable = shlex.join(self._command)
        LOGGER.debug("opening: %s", printable)
        try:
            self._proc = subprocess.Popen(
                self._command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE if self.debug else None,
                stderr=subprocess.STDOUT if self.debug else None,
            )
        except OSError as exc:
            raise IndexerError(f"Can't exec {printable}: {exc}") from exc

        if self.debug and self._proc.stdout is not None:
            self._reader = threading.Thread(
                target=_drain, args=(self._proc.stdout, self._command[0]), daemon=True
            )
            self._reader.start()

        self.state = IndexerState.RUNNING
        return self

    def write(self, data: bytes) -> None:
        if self.state is not IndexerState.RUNNING or self._proc is None or self._proc.stdin is None:
            raise IndexerError(f"Indexer for {self.name} is not running")
        try:
            self._proc.stdin.write(data)
        except (BrokenPipeError, ValueError) as exc:
            raise IndexerError(f"Failed to write to {shlex.join(self._command)}: {exc}") from exc

    def write_document(self, document: "Document", framer: HeaderFramer | None = None) -> None:
        framer = framer or HeaderFramer(swish3=self.config.swish3)
        self.write(document.serialize_for_wire(framer))

    def close(self) -> None:
        """Close stdin, wait for the process and check its exit status."""
        if self.state is not IndexerState.RUNNING or self._proc is None:
            return
        proc = self._proc
        printable = shlex.join(self._command)
        close_error: OSError | None = None
        try:
            if proc.stdin is not None:
                proc.stdin.close()
        except OSError as exc:
            close_error = exc
        status = proc.wait()
        if self._reader is not None:
            self._reader.join()
        self.state = IndexerState.CLOSED
        self._proc = None

        if status == 0:
            if close_error is not None:
                LOGGER.debug("Ignoring close error for %s: %s", printable, close_error)
            return
        if status == NO_DOCUMENTS_EXIT:
            LOGGER.warning("No documents were indexed into %s", self.name)
            return
        raise IndexerError(f"Can't close indexer {printable}: exit status {status}")

    def __enter__(self) -> "SwishIndexer":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
            return
        # Don't mask the original error with a close failure
        try:
            self.close()
        except IndexerError as close_exc:
            LOGGER.error("%s", close_exc)

    def remove(self) -> bool:
        """Remove all files of this index."""
        return self.handle.remove()

    def rename(self, new_name: Path | str) -> bool:
        """Rename all files of this index; later operations use ``new_name``."""
        return self.handle.rename(new_name)

    def _scratch_handle(self, tag: str) -> IndexHandle:
        base = self.handle.name
        name = base.with_name(f"{base.name}.{tag}-{os.getpid()}-{secrets.token_hex(4)}")
        return IndexHandle(name, self.handle.format)

    def merge(self, *sources: IndexSource) -> None:
        """Merge two or more indexes into this one.

        swish-e cannot merge into one of its own inputs, so the result goes to
        a scratch index that is renamed onto this index only after the merge
        process succeeded.
        """
        names = [_source_name(source) for source in sources]
        if len(names) < 2:
            raise ValueError(f"merge() requires at least 2 source indexes, got {len(names)}")
        self._merge(names)

    def _merge(self, names: list[str]) -> None:
        if len(names) > MERGE_FD_WARNING_THRESHOLD:
            LOGGER.warning(
                "Merging %d indexes at once may exceed the open file limit", len(names)
            )

        scratch = self._scratch_handle("merge")
        inputs = [str(self.handle.name)] if self.handle.exists() else []
        cmd = [
            *self._base_command(),
            *self._level_flags(),
            "-M",
            *inputs,
            *names,
            str(scratch.name),
        ]
        printable = shlex.join(cmd)
        LOGGER.debug("merging: %s", printable)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as exc:
            raise IndexerError(f"Can't exec {printable}: {exc}") from exc

        if self.debug:
            for line in (result.stdout + result.stderr).splitlines():
                LOGGER.debug("[merge] %s", line)

        if result.returncode != 0:
            scratch.remove(missing_ok=True)
            raise IndexerError(f"Merge failed: {printable}: exit status {result.returncode}")

        target = self.handle.name
        if not scratch.rename(target):
            raise IndexerError(f"Failed to rename merged index {scratch.name} to {target}")

    def add(self, document: "Document", framer: HeaderFramer | None = None) -> None:
        """Add a single document to this index.

        The native format has no in-place update, so the document is indexed
        into a scratch index which is then merged into this one.
        """
        if self.handle.format is IndexFormat.INCREMENTAL:
            raise NotImplementedError("add() is not implemented for the incremental index format")

        scratch = SwishIndexer(
            config=self.config,
            settings=self.settings,
            handle=self._scratch_handle("add"),
        )
        try:
            with scratch:
                scratch.write_document(document, framer)
            if self.handle.exists():
                self._merge([str(scratch.name)])
            elif not scratch.handle.rename(self.handle.name):
                raise IndexerError(f"Failed to rename {scratch.name} to {self.handle.name}")
        finally:
            if scratch.handle.name != self.handle.name:
                scratch.handle.remove(missing_ok=True)


def merge_indexes(target: Path | str, sources: Iterable[IndexSource], **kwargs) -> SwishIndexer:
    """Merge ``sources`` into ``target`` and return the target's indexer."""
    indexer = SwishIndexer(target, **kwargs)
    indexer.merge(*sources)
    return indexer
