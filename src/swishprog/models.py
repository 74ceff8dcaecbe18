"""Core swishprog data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from swishprog.headers import HeaderFramer


class ParserType(str, Enum):
    """Swish-e parser selected for a document."""

    HTML = "HTML*"
    XML = "XML*"
    TXT = "TXT*"


class UpdateMode(str, Enum):
    """Per-document update mode for incremental indexes."""

    UPDATE = "Update"
    REMOVE = "Remove"
    ADD = "Add"


class IndexFormat(str, Enum):
    """On-disk index format produced by the external indexer."""

    NATIVE = "native"
    INCREMENTAL = "incremental"


PARSER_TYPES: dict[str, ParserType] = {
    "text/html": ParserType.HTML,
    "text/xml": ParserType.XML,
    "application/xml": ParserType.XML,
    "text/plain": ParserType.TXT,
    "application/pdf": ParserType.HTML,
    "application/msword": ParserType.HTML,
    "audio/mpeg": ParserType.XML,
}
DEFAULT_PARSER = ParserType.HTML


def parser_for(mime_type: str | None) -> ParserType:
    """Return the parser type for a MIME type, HTML* when unknown."""
    return PARSER_TYPES.get(mime_type or "", DEFAULT_PARSER)


DocumentHook = Callable[["Document"], None]

# Fixed order in which DocumentHooks are applied.
HOOK_ORDER = ("url", "mod_time", "mime_type", "parser_hint", "content", "update_mode")


@dataclass(slots=True)
class DocumentHooks:
    """Optional per-field normalisation steps run when a Document is created.

    Each hook receives the document and mutates it in place. Hooks run in
    ``HOOK_ORDER`` regardless of the order they were supplied in.
    """

    url: Optional[DocumentHook] = None
    mod_time: Optional[DocumentHook] = None
    mime_type: Optional[DocumentHook] = None
    parser_hint: Optional[DocumentHook] = None
    content: Optional[DocumentHook] = None
    update_mode: Optional[DocumentHook] = None


@dataclass(slots=True)
class Document:
    """One indexable unit, as handed to the external indexer."""

    content: bytes
    url: str | None = None
    mime_type: str = "text/plain"
    parser_hint: ParserType | None = None
    mod_time: int | None = None
    update_mode: UpdateMode | None = None
    title: str | None = None
    declared_size: int | None = None
    source: Any = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if isinstance(self.content, str):
            self.content = self.content.encode("utf-8")
        if self.url is not None:
            self.url = str(self.url)

    @property
    def size(self) -> int:
        if self.declared_size is not None:
            return self.declared_size
        return len(self.content)

    def apply_hooks(self, hooks: DocumentHooks | None) -> "Document":
        if hooks is None:
            return self
        for name in HOOK_ORDER:
            hook = getattr(hooks, name)
            if hook is not None:
                hook(self)
        if isinstance(self.content, str):
            self.content = self.content.encode("utf-8")
        return self

    def serialize_for_wire(self, framer: "HeaderFramer") -> bytes:
        """Render header block plus content for the ``-S prog`` stream."""
        # Content-Length comes from len(content), never declared_size
        return framer.frame(
            self.content,
            url=self.url,
            mod_time=self.mod_time,
            parser_hint=self.parser_hint,
            mime_type=self.mime_type,
            update_mode=self.update_mode,
        )
