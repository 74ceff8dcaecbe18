"""Exception types raised by swishprog."""

from __future__ import annotations


class SwishProgError(Exception):
    """Base class for all swishprog errors."""


class ConfigurationError(SwishProgError, ValueError):
    """Missing or invalid configuration, raised at construction time."""


class IndexerError(SwishProgError, RuntimeError):
    """The external indexer process failed or could not be driven."""


class ContentFilterError(SwishProgError):
    """A content filter could not convert a document."""
