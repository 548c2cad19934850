"""Export and import of the game collection as a JSON file."""
import datetime
import json
from typing import List, Optional, Sequence

from ..errors import ImportParseError
from ..models import LibraryEntry
from ..repositories.base import atomic_write_json
from ..repositories.library_repository import entries_from_json

DEFAULT_APP_NAME = 'repingo-games'


def export_filename(app_name: str = DEFAULT_APP_NAME,
                    today: Optional[datetime.date] = None) -> str:
    """Return the default export file name, e.g. ``repingo-games-2025-04-02.json``.

    The date is the current UTC date.
    """
    today = today or datetime.datetime.now(datetime.timezone.utc).date()
    return f"{app_name}-{today.isoformat()}.json"


def dumps(entries: Sequence[LibraryEntry]) -> str:
    """Serialise *entries* to the export document format (a JSON array)."""
    return json.dumps([entry.to_dict() for entry in entries], indent=2,
                      ensure_ascii=False)


def loads(text: str) -> List[LibraryEntry]:
    """Parse an export document.

    Raises:
        ImportParseError: if *text* is not valid JSON or is not an array of
            well-formed entries.
    """
    try:
        raw = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ImportParseError(f"Not a valid JSON document: {exc}") from exc
    try:
        return entries_from_json(raw)
    except ValueError as exc:
        raise ImportParseError(f"Unexpected file format: {exc}") from exc


def export_to(entries: Sequence[LibraryEntry], filepath: str) -> None:
    """Write *entries* to *filepath* (atomic write).

    Raises:
        OSError: on I/O failure.
    """
    atomic_write_json(filepath, [entry.to_dict() for entry in entries])


def read_from(filepath: str) -> List[LibraryEntry]:
    """Read and parse an export file.

    Raises:
        ImportParseError: if the file cannot be read or parsed.
    """
    try:
        with open(filepath, 'r', encoding='utf-8') as fh:
            text = fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise ImportParseError(f"Could not read {filepath}: {exc}") from exc
    return loads(text)
