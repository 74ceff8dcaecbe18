"""Document headers for the Swish-e ``-S prog`` input stream.

Each document is written as a block of ``Label: value`` lines, a blank line,
and exactly ``Content-Length`` bytes of content. The indexer splits documents
by length, so nothing separates one document from the next.
"""

from __future__ import annotations

import itertools
import threading
import time
from enum import Enum
from typing import Any

# Canonical option key -> header label, per protocol generation.
LEGACY_LABELS: dict[str, str] = {
    "url": "Path-Name",
    "mod_time": "Last-Mtime",
    "parser_hint": "Document-Type",
    "update_mode": "Update-Mode",
}

CURRENT_LABELS: dict[str, str] = {
    "url": "Content-Location",
    "mod_time": "Last-Modified",
    "parser_hint": "Parser-Type",
    "mime_type": "Content-Type",
    "update_mode": "Update-Mode",
}

PROCESS_START = int(time.time())


def _render(value: Any) -> str:
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


class HeaderFramer:
    """Build framed documents for the external indexer.

    ``swish3`` selects the current label table; the legacy (Swish-e 2.x)
    table is the default. Documents without a URL get a unique integer
    surrogate from a counter owned by this framer, seeded with the process
    start time.
    """

    def __init__(self, *, swish3: bool = False, url_seed: int | None = None) -> None:
        self.swish3 = swish3
        self._urls = itertools.count(PROCESS_START if url_seed is None else url_seed)
        self._lock = threading.Lock()

    @property
    def labels(self) -> dict[str, str]:
        return CURRENT_LABELS if self.swish3 else LEGACY_LABELS

    def next_url(self) -> str:
        with self._lock:
            return str(next(self._urls))

    def head(
        self,
        content: bytes | str,
        *,
        url: str | None = None,
        mod_time: int | None = None,
        parser_hint: Any = None,
        mime_type: str | None = None,
        update_mode: Any = None,
    ) -> bytes:
        """Return the header block (including the terminating blank line)."""
        if isinstance(content, str):
            content = content.encode("utf-8")

        options = {
            "url": url if url is not None else self.next_url(),
            "mod_time": mod_time if mod_time is not None else int(time.time()),
            "parser_hint": parser_hint,
            "mime_type": mime_type,
            "update_mode": update_mode,
        }

        lines = [f"Content-Length: {len(content)}"]
        labels = self.labels
        for key in sorted(options):
            value = options[key]
            if value is None or key not in labels:
                continue
            lines.append(f"{labels[key]}: {_render(value)}")
        return ("\n".join(lines) + "\n\n").encode("utf-8")

    def frame(self, content: bytes | str, **options: Any) -> bytes:
        """Return header block followed by the content bytes."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        return self.head(content, **options) + content
