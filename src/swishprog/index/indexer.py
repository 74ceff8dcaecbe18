"""Document indexing pipeline."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, BinaryIO, Callable, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from swishprog.exceptions import ConfigurationError, ContentFilterError, IndexerError
from swishprog.headers import HeaderFramer
from swishprog.index.process import IndexerState, SwishIndexer
from swishprog.models import Document

if TYPE_CHECKING:
    from swishprog.ingestion.base import Aggregator
    from swishprog.settings import Settings

LOGGER = logging.getLogger(__name__)

# Per-item failures that skip the item instead of aborting the run.
ITEM_ERRORS = (OSError, UnicodeDecodeError, ContentFilterError, SQLAlchemyError)


@dataclass(slots=True)
class IndexStats:
    indexed: int = 0
    skipped: int = 0
    failed: int = 0
    processed: list[str] = field(default_factory=list)

    def increment(self, status: str, item: Any) -> None:
        if status == "indexed":
            self.indexed += 1
        elif status == "skipped":
            self.skipped += 1
        else:
            self.failed += 1
        self.processed.append(str(item))


class Indexer:
    """Coordinates aggregators and the output stream.

    Documents go either to a ``SwishIndexer`` process (started lazily on the
    first write) or to an already open binary stream, which is handy for
    saving the framed output to a file or stdout.
    """

    def __init__(
        self,
        process: SwishIndexer | None = None,
        *,
        stream: BinaryIO | None = None,
        framer: HeaderFramer | None = None,
        doc_filter: Optional[Callable[[Document], None]] = None,
        accept: Optional[Callable[[Document], bool]] = None,
    ) -> None:
        if process is not None and stream is not None:
            raise ConfigurationError("Pass either an indexer process or a stream, not both")
        if process is None and stream is None:
            process = SwishIndexer()
        self.process = process
        self.stream = stream
        swish3 = process.config.swish3 if process is not None else False
        self.framer = framer or HeaderFramer(swish3=swish3)
        self.doc_filter = doc_filter
        self.accept = accept
        self.stats = IndexStats()
        self._count = 0
        self._start = time.time()

    @property
    def count(self) -> int:
        return self._count

    @property
    def elapsed(self) -> float:
        return time.time() - self._start

    @property
    def settings(self) -> "Settings | None":
        return self.process.settings if self.process is not None else None

    def content_ok(self, document: Document) -> bool:
        return len(document.content) > 0

    def ok(self, document: Document) -> bool:
        if self.accept is not None:
            return self.accept(document)
        return self.content_ok(document)

    def index(self, document: Document) -> bool:
        """Filter, test and write one document. Returns True if written."""
        if self.doc_filter is not None:
            self.doc_filter(document)
        if not self.ok(document):
            LOGGER.debug("Document %s not accepted", document.url)
            return False

        data = document.serialize_for_wire(self.framer)
        if self.stream is not None:
            self.stream.write(data)
        else:
            if self.process.state is IndexerState.IDLE:
                self.process.start()
            self.process.write(data)
        self._count += 1
        return True

    def index_source(self, adapter: "Aggregator", items: Iterable[Any] | None = None) -> int:
        """Index every eligible item of ``adapter``; return how many were written."""
        written = 0
        for item in adapter.items() if items is None else items:
            try:
                if not adapter.is_eligible(item):
                    LOGGER.debug("Skipping %s", item)
                    self.stats.increment("skipped", item)
                    continue
                document = adapter.to_document(item)
            except ITEM_ERRORS as exc:
                LOGGER.warning("Failed to read %s: %s - skipping", item, exc)
                self.stats.increment("failed", item)
                continue

            if document is None or not self.index(document):
                self.stats.increment("skipped", item)
                continue
            self.stats.increment("indexed", item)
            written += 1
        return written

    def finish(self) -> None:
        """Flush the stream or close the indexer process."""
        if self.stream is not None:
            self.stream.flush()
        elif self.process.state is IndexerState.RUNNING:
            self.process.close()

    def __enter__(self) -> "Indexer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.finish()
            return
        # Keep the error already propagating
        try:
            self.finish()
        except IndexerError as finish_exc:
            LOGGER.error("%s", finish_exc)
