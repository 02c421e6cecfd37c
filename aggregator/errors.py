"""
Exceptions raised by the fetch pipeline and its store.
"""

from typing import Optional


class FetchError(Exception):
    """The network request for a source failed, timed out or returned non-2xx."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ParseError(Exception):
    """Fetched content could not be parsed as its declared type."""


class PersistenceConflict(Exception):
    """A write was rejected by a uniqueness constraint."""


class LogPersistenceError(Exception):
    """A fetch run log could not be written."""


class SourceNotFoundError(Exception):
    pass


class SourceDisabledError(Exception):
    pass
