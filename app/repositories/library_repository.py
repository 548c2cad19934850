"""Repository for the game collection ([LibraryEntry, ...])."""
import logging
import time
from typing import Callable, List, Optional

from ..models import LibraryEntry
from .kv_store import KeyValueStore

STORAGE_KEY = 'repingoGames'

_log = logging.getLogger('repingo.repository.LibraryRepository')


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def sample_entries(now: int) -> List[LibraryEntry]:
    """The built-in starter collection installed on first run."""
    return [
        LibraryEntry(
            id='1',
            name='Minecraft',
            description='Um jogo de mundo aberto onde você pode construir e explorar.',
            max_players=8,
            available_on_hydra=True,
            image_url='https://www.minecraft.net/content/dam/games/minecraft/key-art/'
                      'MCEE_PartnerImage_3840x2160.jpg',
            added_by='Pedro',
            played=True,
            created_at=now - 3000000,  # 50 minutes ago
        ),
        LibraryEntry(
            id='2',
            name='Counter-Strike 2',
            description='FPS tático em equipes de terroristas e contra-terroristas.',
            max_players=10,
            available_on_hydra=True,
            image_url='https://cdn.akamai.steamstatic.com/steam/apps/730/capsule_616x353.jpg',
            added_by='João',
            played=False,
            created_at=now - 1800000,  # 30 minutes ago
        ),
        LibraryEntry(
            id='3',
            name='Stardew Valley',
            description='Jogo de simulação de fazenda com elementos de RPG.',
            max_players=4,
            available_on_hydra=False,
            image_url='https://cdn.akamai.steamstatic.com/steam/apps/413150/header.jpg',
            added_by='Maria',
            played=False,
            created_at=now - 600000,  # 10 minutes ago
        ),
    ]


def entries_from_json(raw) -> List[LibraryEntry]:
    """Convert a decoded JSON array into entries.

    Raises:
        ValueError: if *raw* is not an array of well-formed entries with
            unique ids.
    """
    if not isinstance(raw, list):
        raise ValueError(f"expected a JSON array, got {type(raw).__name__}")
    entries: List[LibraryEntry] = []
    seen = set()
    for index, item in enumerate(raw):
        try:
            entry = LibraryEntry.from_dict(item)
        except ValueError as exc:
            raise ValueError(f"item {index}: {exc}") from exc
        if entry.id in seen:
            raise ValueError(f"item {index}: duplicate id {entry.id!r}")
        seen.add(entry.id)
        entries.append(entry)
    return entries


class LibraryRepository:
    """Persists the game collection under a fixed key of a :class:`KeyValueStore`.

    Schema (value stored under ``repingoGames``)::

        [ { "id": "...", "name": "...", ... }, ... ]

    When the key is absent the sample collection is installed and written
    back straight away.  A stored value that cannot be parsed is logged and
    the collection starts empty; the stored value is left alone until the
    next mutation.
    """

    def __init__(self, store: KeyValueStore, key: str = STORAGE_KEY,
                 clock: Callable[[], int] = now_ms) -> None:
        self._store = store
        self._key = key
        if not store.contains(key):
            _log.info("No saved games under %r; installing sample library", key)
            self.data: List[LibraryEntry] = sample_entries(clock())
            self.save()
        else:
            try:
                self.data = entries_from_json(store.get(key))
            except ValueError as exc:
                _log.warning("Stored games under %r are unreadable (%s); starting empty",
                             key, exc)
                self.data = []

    def find(self, entry_id: str) -> Optional[LibraryEntry]:
        for entry in self.data:
            if entry.id == entry_id:
                return entry
        return None

    def contains(self, entry_id: str) -> bool:
        return self.find(entry_id) is not None

    def insert_front(self, entry: LibraryEntry) -> None:
        self.data.insert(0, entry)
        self.save()

    def replace(self, entry: LibraryEntry) -> bool:
        """Swap in *entry* for the stored entry with the same id.  Returns ``True`` if found."""
        for index, current in enumerate(self.data):
            if current.id == entry.id:
                self.data[index] = entry
                self.save()
                return True
        return False

    def delete(self, entry_id: str) -> Optional[LibraryEntry]:
        """Remove and return the entry with *entry_id*, or ``None`` if absent."""
        for index, current in enumerate(self.data):
            if current.id == entry_id:
                del self.data[index]
                self.save()
                return current
        return None

    def replace_all(self, entries: List[LibraryEntry]) -> None:
        self.data = list(entries)
        self.save()

    def save(self) -> None:
        self._store.set(self._key, [entry.to_dict() for entry in self.data])
