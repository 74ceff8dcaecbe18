"""Content filters that turn binary formats into indexable text.

Uses PyMuPDF (fitz) for fast PDF text extraction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Protocol, Sequence, runtime_checkable

import fitz  # PyMuPDF

from swishprog.models import ParserType
from swishprog.utils.text import is_binary, normalize_whitespace

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class FilterResult:
    content: bytes
    was_filtered: bool = True
    is_binary: bool = False
    mime_type: str = "text/plain"
    parser_hint: ParserType | None = ParserType.TXT


@runtime_checkable
class ContentFilter(Protocol):
    def can_filter(self, mime_type: str) -> bool: ...

    def convert(self, content: bytes, mime_type: str, name: str) -> FilterResult | None: ...


def iter_text_parts(content: bytes, name: str = "") -> Iterator[str]:
    """Yield text content from PDF bytes page by page."""
    try:
        doc = fitz.open(stream=content, filetype="pdf")
    except Exception as exc:
        LOGGER.error("Failed to open PDF %s: %s", name, exc)
        return

    try:
        for index in range(len(doc)):
            try:
                page = doc[index]
                text = page.get_text() or ""
                normalized = normalize_whitespace(text.splitlines())
                if normalized:
                    yield normalized + "\n"
            except Exception as exc:  # pragma: no cover
                LOGGER.warning("Failed to read page %s in %s: %s", index, name, exc)
    finally:
        doc.close()


class PdfFilter:
    """Convert ``application/pdf`` documents to plain text."""

    mime_types = frozenset({"application/pdf", "application/x-pdf"})

    def can_filter(self, mime_type: str) -> bool:
        return mime_type in self.mime_types

    def convert(self, content: bytes, mime_type: str, name: str) -> FilterResult | None:
        text = "".join(iter_text_parts(content, name))
        if not text:
            return None
        data = text.encode("utf-8")
        return FilterResult(content=data, is_binary=is_binary(data))


class FilterChain:
    """Try each filter in turn; the first one accepting the type converts."""

    def __init__(self, filters: Iterable[ContentFilter] = ()) -> None:
        self.filters: Sequence[ContentFilter] = list(filters)

    def can_filter(self, mime_type: str) -> bool:
        return any(f.can_filter(mime_type) for f in self.filters)

    def convert(self, content: bytes, mime_type: str, name: str) -> FilterResult | None:
        for content_filter in self.filters:
            if content_filter.can_filter(mime_type):
                LOGGER.debug("Filtering %s (%s) with %s", name, mime_type, type(content_filter).__name__)
                return content_filter.convert(content, mime_type, name)
        return None


def default_filter() -> FilterChain:
    return FilterChain([PdfFilter()])
