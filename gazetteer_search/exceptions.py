"""Exception hierarchy for the gazetteer search engine.

Exception Hierarchy:
    GazetteerError (base)
    +-- DatasetError - a data file could not be used
        |-- DatasetFetchError - network, HTTP status or missing file
        +-- DatasetFormatError - invalid JSON or unexpected top-level shape

Sources raise these; the loader catches them per file and degrades, so they
never reach callers of ``SearchEngine.search`` or ``notify_viewport``.
"""

from __future__ import annotations


class GazetteerError(Exception):
    """Base exception for all gazetteer search errors."""

    pass


class DatasetError(GazetteerError):
    """Raised when a dataset file cannot be turned into records.

    Attributes:
        message: Human-readable error description
        path: Dataset path relative to the source root
    """

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(message)


class DatasetFetchError(DatasetError):
    """Raised when a dataset file cannot be retrieved."""

    pass


class DatasetFormatError(DatasetError):
    """Raised when a dataset file is not valid JSON of the expected shape."""

    pass
