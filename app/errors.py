"""Exception hierarchy for the game library.

None of these are fatal: callers (the CLI and the web API) catch them and
present a short notice to the user.
"""
from typing import List, Optional


class RepingoError(Exception):
    """Base class for all recoverable library errors."""


class ValidationError(RepingoError):
    """Raised when an add/edit form is missing a required text field."""

    def __init__(self, fields: List[str], message: Optional[str] = None) -> None:
        self.fields = list(fields)
        super().__init__(message or
                         f"Missing required field(s): {', '.join(self.fields)}")


class EmptyPoolError(RepingoError):
    """Raised when a spin is requested with no eligible entries."""

    def __init__(self, message: str = "Add games before spinning!") -> None:
        super().__init__(message)


class ImportParseError(RepingoError):
    """Raised when an import document cannot be turned into a collection."""


class EntryNotFoundError(RepingoError, KeyError):
    """Raised when an operation names an id that is not in the collection."""

    def __init__(self, entry_id: str, message: Optional[str] = None) -> None:
        self.entry_id = entry_id
        super().__init__(message or f"No game with id {entry_id!r}")

    def __str__(self) -> str:
        return self.args[0]


class SelectionStateError(RepingoError):
    """Raised on an invalid spin transition (spin while spinning, finish while idle)."""
