from __future__ import annotations


class CrawlerError(Exception):
    """Base class for errors raised by the crawler."""


class ValidationError(CrawlerError):
    """A task or its rules cannot be run. Raised before any network activity."""


class StorageError(CrawlerError):
    """The storage collaborator failed to persist one or more items."""
