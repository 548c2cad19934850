"""Data models: the library entry record and the add/edit form."""
import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from .errors import ValidationError

DEFAULT_MAX_PLAYERS = 4

# Wire name -> attribute name.  Wire names are what storage, export files and
# the HTTP API use.
WIRE_FIELDS = {
    'id': 'id',
    'name': 'name',
    'description': 'description',
    'maxPlayers': 'max_players',
    'availableOnHydra': 'available_on_hydra',
    'imageUrl': 'image_url',
    'addedBy': 'added_by',
    'played': 'played',
    'createdAt': 'created_at',
}

REQUIRED_TEXT_FIELDS = ('name', 'description', 'addedBy')


def parse_max_players(value: Any) -> int:
    """Coerce *value* to a positive player count.

    Integers and numeric strings are accepted (``"6"`` and ``"6.0"`` both give
    6).  Anything that is not a positive integer falls back to
    :data:`DEFAULT_MAX_PLAYERS`.
    """
    if isinstance(value, bool) or value is None:
        return DEFAULT_MAX_PLAYERS
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        number = int(value) if math.isfinite(value) else 0
    elif isinstance(value, str):
        text = value.strip()
        try:
            number = int(text)
        except ValueError:
            try:
                number = int(float(text))
            except (ValueError, OverflowError):
                return DEFAULT_MAX_PLAYERS
    else:
        return DEFAULT_MAX_PLAYERS
    return number if number > 0 else DEFAULT_MAX_PLAYERS


@dataclass(frozen=True)
class LibraryEntry:
    """One game record in the collection.

    Entries are immutable; edits and toggles produce a new instance with the
    same ``id`` and ``created_at``.
    """
    id: str
    name: str
    description: str
    added_by: str
    max_players: int = DEFAULT_MAX_PLAYERS
    available_on_hydra: bool = False
    image_url: str = ''
    played: bool = False
    created_at: Optional[int] = None  # ms timestamp; None sorts as 0

    @property
    def sort_time(self) -> int:
        return self.created_at or 0

    def with_played(self, played: bool) -> 'LibraryEntry':
        return replace(self, played=played)

    def to_dict(self) -> Dict[str, Any]:
        """Return the wire representation (camelCase keys).

        ``createdAt`` is omitted when unset so that entries imported without
        it export back the same way.
        """
        data = {wire: getattr(self, attr) for wire, attr in WIRE_FIELDS.items()}
        if self.created_at is None:
            del data['createdAt']
        return data

    @classmethod
    def from_dict(cls, data: Any) -> 'LibraryEntry':
        """Build an entry from its wire representation.

        Raises:
            ValueError: if *data* is not an object, lacks a usable ``id`` or
                carries a field of the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError(f"entry must be an object, got {type(data).__name__}")

        entry_id = data.get('id')
        if not isinstance(entry_id, str) or not entry_id:
            raise ValueError("entry is missing a non-empty 'id'")

        for key in REQUIRED_TEXT_FIELDS + ('imageUrl',):
            if key in data and not isinstance(data[key], str):
                raise ValueError(f"entry {entry_id!r}: '{key}' must be a string")
        if not isinstance(data.get('name'), str):
            raise ValueError(f"entry {entry_id!r}: 'name' is required")

        for key in ('played', 'availableOnHydra'):
            if key in data and not isinstance(data[key], bool):
                raise ValueError(f"entry {entry_id!r}: '{key}' must be true or false")

        max_players = data.get('maxPlayers', DEFAULT_MAX_PLAYERS)
        if (isinstance(max_players, bool) or not isinstance(max_players, int)
                or max_players < 1):
            raise ValueError(f"entry {entry_id!r}: 'maxPlayers' must be a positive integer")

        created_at = data.get('createdAt')
        if created_at is not None and (isinstance(created_at, bool)
                                       or not isinstance(created_at, int)):
            raise ValueError(f"entry {entry_id!r}: 'createdAt' must be an integer")

        return cls(
            id=entry_id,
            name=data['name'],
            description=data.get('description', ''),
            added_by=data.get('addedBy', ''),
            max_players=max_players,
            available_on_hydra=data.get('availableOnHydra', False),
            image_url=data.get('imageUrl', ''),
            played=data.get('played', False),
            created_at=created_at,
        )


@dataclass
class ValidationResult:
    """Outcome of :meth:`EntryForm.validate`."""
    missing: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing

    def raise_for_errors(self) -> None:
        if self.missing:
            raise ValidationError(self.missing)


@dataclass
class EntryForm:
    """Editable fields of an entry, as collected by the add/edit forms."""
    name: str = ''
    description: str = ''
    added_by: str = ''
    max_players: Any = DEFAULT_MAX_PLAYERS
    available_on_hydra: bool = False
    image_url: str = ''
    played: bool = False

    def validate(self) -> ValidationResult:
        values = {
            'name': self.name,
            'description': self.description,
            'addedBy': self.added_by,
        }
        missing = [key for key, value in values.items()
                   if not isinstance(value, str) or not value.strip()]
        return ValidationResult(missing)

    def cleaned(self) -> Dict[str, Any]:
        """Return attribute values ready to go onto a :class:`LibraryEntry`."""
        return {
            'name': self.name.strip(),
            'description': self.description.strip(),
            'added_by': self.added_by.strip(),
            'max_players': parse_max_players(self.max_players),
            'available_on_hydra': bool(self.available_on_hydra),
            'image_url': (self.image_url or '').strip(),
            'played': bool(self.played),
        }

    @classmethod
    def from_entry(cls, entry: LibraryEntry) -> 'EntryForm':
        return cls(
            name=entry.name,
            description=entry.description,
            added_by=entry.added_by,
            max_players=entry.max_players,
            available_on_hydra=entry.available_on_hydra,
            image_url=entry.image_url,
            played=entry.played,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EntryForm':
        """Build a form from a wire-style payload (e.g. an HTTP request body)."""
        def _text(key: str) -> str:
            value = data.get(key)
            return value if isinstance(value, str) else ''

        def _flag(key: str) -> bool:
            # Only real JSON booleans count; "false" must not read as true.
            value = data.get(key)
            return value if isinstance(value, bool) else False

        return cls(
            name=_text('name'),
            description=_text('description'),
            added_by=_text('addedBy'),
            max_players=data.get('maxPlayers', DEFAULT_MAX_PLAYERS),
            available_on_hydra=_flag('availableOnHydra'),
            image_url=_text('imageUrl'),
            played=_flag('played'),
        )
