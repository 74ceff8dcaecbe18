"""Text helpers shared by the content filters and aggregators."""

from __future__ import annotations

import re
from typing import Iterable

_TITLE_RE = re.compile(rb"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)


def normalize_whitespace(lines: Iterable[str]) -> str:
    """Collapse whitespace and join lines."""
    return "\n".join(line.strip() for line in lines if line.strip())


def is_binary(content: bytes, *, sample: int = 1024) -> bool:
    """Guess whether ``content`` is binary by looking for NUL bytes."""
    return b"\x00" in content[:sample]


def decode_text(content: bytes, charset: str | None = None) -> str:
    """Decode bytes leniently, trying ``charset`` before UTF-8."""
    for encoding in (charset, "utf-8"):
        if not encoding:
            continue
        try:
            return content.decode(encoding)
        except (LookupError, UnicodeDecodeError):
            continue
    return content.decode("latin-1")


def html_title(content: bytes) -> str | None:
    """Return the text of the first <title> element, if any."""
    match = _TITLE_RE.search(content)
    if match is None:
        return None
    return " ".join(decode_text(match.group(1)).split())
