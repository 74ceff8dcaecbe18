"""Base class for document sources.

An aggregator turns items from some store (files, rows, mail, objects) into
``Document`` objects. The ``Indexer`` drives it::

    for item in aggregator.items():
        if aggregator.is_eligible(item):
            document = aggregator.to_document(item)

User customisation happens through hook callables passed to the constructor
rather than subclass overrides.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Iterable, Iterator

from swishprog.config import AppConfig
from swishprog.exceptions import ConfigurationError
from swishprog.index.indexer import Indexer
from swishprog.ingestion.filters import ContentFilter, FilterResult, default_filter
from swishprog.models import Document, DocumentHooks
from swishprog.settings import Settings
from swishprog.utils.xml import XMLBuilder

LOGGER = logging.getLogger(__name__)


class Aggregator(ABC):
    """Common plumbing for all source adapters."""

    def __init__(
        self,
        indexer: Indexer | None = None,
        *,
        config: AppConfig | None = None,
        hooks: DocumentHooks | None = None,
        content_filter: ContentFilter | None = None,
    ) -> None:
        self.indexer = indexer
        if config is None:
            process = indexer.process if indexer is not None else None
            config = process.config if process is not None else AppConfig()
        self.config = config
        self.hooks = hooks
        self.content_filter = content_filter if content_filter is not None else default_filter()
        self.xml = XMLBuilder()

    def _configure_indexer(self) -> None:
        """Let the aggregator add its directives to the indexer's settings."""
        settings = self.indexer.settings if self.indexer is not None else None
        if settings is not None:
            self.configure(settings)

    @property
    def debug(self) -> bool:
        return self.config.debug

    def configure(self, settings: Settings) -> None:
        """Add source-specific directives to ``settings``."""

    @abstractmethod
    def items(self) -> Iterator[Any]:
        """Yield raw items until the source is exhausted."""

    def is_eligible(self, item: Any) -> bool:
        return True

    @abstractmethod
    def to_document(self, item: Any) -> Document | None:
        """Convert a raw item, or return None to skip it."""

    def make_document(self, **fields: Any) -> Document:
        document = Document(**fields)
        return document.apply_hooks(self.hooks)

    def filter_content(self, content: bytes, mime_type: str, name: str) -> FilterResult | None:
        """Run ``content`` through the content filter.

        Returns None when the filter cannot handle ``mime_type``. Raises
        nothing on conversion problems; instead returns a result with
        ``was_filtered`` False, which callers treat as a skip.
        """
        if not self.content_filter.can_filter(mime_type):
            return None
        result = self.content_filter.convert(content, mime_type, name)
        if result is None:
            return FilterResult(content=b"", was_filtered=False)
        return result

    @staticmethod
    def filter_failed(result: FilterResult) -> bool:
        return not result.was_filtered or result.is_binary

    def run(self, items: Iterable[Any] | None = None) -> int:
        """Feed ``items`` (or ``self.items()``) to the attached indexer."""
        if self.indexer is None:
            raise ConfigurationError(f"{type(self).__name__} has no indexer attached")
        return self.indexer.index_source(self, items)
