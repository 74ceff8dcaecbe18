"""Tests for the document header framer."""

from __future__ import annotations

from unittest.mock import patch

from swishprog.headers import PROCESS_START, HeaderFramer
from swishprog.models import ParserType, UpdateMode


class TestLegacyHeaders:
    """Swish-e 2.x label table."""

    def test_full_frame(self) -> None:
        """Labels come in canonical key order after Content-Length."""
        framer = HeaderFramer()
        data = framer.frame(
            b"<html>hi</html>",
            url="docs/a.html",
            mod_time=1700000000,
            parser_hint=ParserType.HTML,
            mime_type="text/html",
        )
        assert data == (
            b"Content-Length: 15\n"
            b"Last-Mtime: 1700000000\n"
            b"Document-Type: HTML*\n"
            b"Path-Name: docs/a.html\n"
            b"\n"
            b"<html>hi</html>"
        )

    def test_mime_type_has_no_legacy_label(self) -> None:
        """The legacy table has no Content-Type label."""
        head = HeaderFramer().head(b"x", url="u", mod_time=1, mime_type="text/plain")
        assert b"Content-Type" not in head

    def test_update_mode(self) -> None:
        """Update-Mode is written from the enum value."""
        head = HeaderFramer().head(b"x", url="u", mod_time=1, update_mode=UpdateMode.REMOVE)
        assert b"Update-Mode: Remove\n" in head

    def test_content_length_counts_bytes(self) -> None:
        """Content-Length counts encoded bytes, not characters."""
        head = HeaderFramer().head("naïve", url="u", mod_time=1)
        assert head.startswith(b"Content-Length: 6\n")

    def test_header_terminated_by_blank_line(self) -> None:
        """The header block ends with a single empty line."""
        head = HeaderFramer().head(b"", url="u", mod_time=1)
        assert head.endswith(b"\n\n")
        assert not head.endswith(b"\n\n\n")


class TestCurrentHeaders:
    """Swish3 label table."""

    def test_full_frame(self) -> None:
        """All five labels are written in canonical key order."""
        framer = HeaderFramer(swish3=True)
        head = framer.head(
            b"abc",
            url="row/1",
            mod_time=5,
            parser_hint=ParserType.XML,
            mime_type="application/x-dbi",
            update_mode=UpdateMode.ADD,
        )
        assert head.decode().splitlines() == [
            "Content-Length: 3",
            "Content-Type: application/x-dbi",
            "Last-Modified: 5",
            "Parser-Type: XML*",
            "Update-Mode: Add",
            "Content-Location: row/1",
            "",
        ]


class TestDefaults:
    """URL surrogates and modification times."""

    def test_url_counter_seeded_with_start_time(self) -> None:
        """Missing URLs get increasing integers from the start time."""
        framer = HeaderFramer()
        first = framer.next_url()
        second = framer.next_url()
        assert int(first) == PROCESS_START
        assert int(second) == PROCESS_START + 1

    def test_explicit_seed(self) -> None:
        """A seed makes surrogates predictable."""
        framer = HeaderFramer(url_seed=10)
        head = framer.head(b"x", mod_time=1)
        assert b"Path-Name: 10\n" in head
        assert b"Path-Name: 11\n" in framer.head(b"y", mod_time=1)

    def test_counters_are_per_framer(self) -> None:
        """Each framer owns its counter."""
        a = HeaderFramer(url_seed=1)
        b = HeaderFramer(url_seed=1)
        assert a.next_url() == b.next_url() == "1"

    def test_mod_time_defaults_to_now(self) -> None:
        """A missing mtime is the current time."""
        with patch("swishprog.headers.time.time", return_value=1234.9):
            head = HeaderFramer().head(b"x", url="u")
        assert b"Last-Mtime: 1234\n" in head
