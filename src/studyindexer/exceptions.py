"""
Error taxonomy for the indexer.

Each error is scoped to the unit of work it can abort:
- TransportError: one repository (or one record fetch, or one bucket write)
- ProtocolError / MalformedRecordError: one record
- FieldParseError: one field of one record, collected as a warning
- AlreadyRunningError: the triggering call
"""

from __future__ import annotations

from typing import Optional


class IndexerError(Exception):
    """Base class for all indexer errors."""


class TransportError(IndexerError):
    """Network or HTTP failure talking to a repository or the search engine."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ProtocolError(IndexerError):
    """An OAI-PMH <error> element was returned."""

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class MalformedRecordError(IndexerError):
    """The record payload is not well-formed XML."""


class FieldParseError(IndexerError):
    """A single field could not be parsed. Never aborts a record."""

    def __init__(self, message: str, *, field: str, value: Optional[str] = None):
        super().__init__(message)
        self.field = field
        self.value = value


class DateNotParsedError(FieldParseError):
    """A date string matched none of the expected formats."""


class InvalidURIError(FieldParseError):
    """A URI attribute is not a valid URI."""


class AlreadyRunningError(IndexerError):
    """A harvest run is already in progress."""


class InvalidStudyError(IndexerError):
    """An active StudyOfLanguage is missing a required field."""


class IndexerIOError(IndexerError):
    """I/O-class failure reading documents back from the search engine."""


class SearchDecodeError(IndexerIOError):
    """A search hit could not be decoded into a StudyOfLanguage."""


class ReaderExhaustedError(IndexerError):
    """A ScrollReader was iterated a second time."""


__all__ = [
    "IndexerError",
    "TransportError",
    "ProtocolError",
    "MalformedRecordError",
    "FieldParseError",
    "DateNotParsedError",
    "InvalidURIError",
    "AlreadyRunningError",
    "InvalidStudyError",
    "IndexerIOError",
    "SearchDecodeError",
    "ReaderExhaustedError",
]
