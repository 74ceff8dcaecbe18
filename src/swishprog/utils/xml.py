"""Helpers for building the virtual XML documents fed to the indexer."""

from __future__ import annotations

import re
from typing import Any

_TAG_INVALID = re.compile(r"[^\w.\-]", re.UNICODE)
_TAG_START = re.compile(r"^[A-Za-z_]")
# Characters not allowed in XML 1.0 documents.
_XML_INVALID = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")

_ESCAPES = {
    "&": "&amp;",
    "<": "&lt;",
    ">": "&gt;",
    '"': "&quot;",
    "'": "&apos;",
}


class XMLBuilder:
    """Escape text and sanitise tag names.

    ``escape`` makes text safe between a start and end tag. ``tag_safe``
    reduces a name to word characters, ``.`` and ``-`` and makes sure it
    starts with a letter or underscore.
    """

    def tag_safe(self, name: Any) -> str:
        tag = _TAG_INVALID.sub("_", str(name).strip())
        if not tag:
            return "_"
        if not _TAG_START.match(tag):
            tag = "_" + tag
        return tag

    def escape(self, text: Any) -> str:
        return "".join(_ESCAPES.get(ch, ch) for ch in self._text(text))

    def utf8_safe(self, value: Any) -> str:
        """Escape ``value`` after coercing it to valid XML character data."""
        return self.escape(_XML_INVALID.sub("", self._text(value)))

    def start_tag(self, name: Any) -> str:
        return f"<{self.tag_safe(name)}>"

    def end_tag(self, name: Any) -> str:
        return f"</{self.tag_safe(name)}>"

    def element(self, name: Any, value: Any) -> str:
        return self.start_tag(name) + self.utf8_safe(value) + self.end_tag(name)

    @staticmethod
    def _text(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8", errors="replace")
        return str(value)
