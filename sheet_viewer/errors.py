"""
Error types raised while resolving links and loading sheet data.

Every error carries a message that is safe to show to the user as-is.
"""


class SheetViewerError(Exception):
    """Base class for all sheet viewer failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidLinkError(SheetViewerError):
    """The input is empty or cannot be parsed as a link or identifier."""


class UnsupportedLinkError(SheetViewerError):
    """The input parses as a URL but is not a Google Sheets or Drive link."""


class MalformedResponseError(SheetViewerError):
    """A transport returned data that cannot be parsed."""


class UnavailableError(SheetViewerError):
    """Every transport strategy failed."""


class EmptyTableError(SheetViewerError):
    """A payload was readable but held no usable columns or rows."""
