from __future__ import annotations


class ClubStatementsError(Exception):
    """Base class for errors raised by the statement extractor."""


class DocumentReadError(ClubStatementsError):
    """The document itself could not be opened or a page could not be read."""

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source
