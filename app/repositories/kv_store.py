"""Repository for the local key-value store ({key: value})."""
from typing import Any, Dict

from .base import BaseRepository

_MISSING = object()


class KeyValueStore(BaseRepository):
    """A small persistent key-value store backed by one JSON object file.

    Plays the role a browser's local storage plays for a web page: callers
    read and write whole JSON values under string keys, and every write is
    flushed to disk immediately.

    Schema::

        { "<key>": <any JSON value> }
    """

    def __init__(self, file_path: str = '.repingo_store.json') -> None:
        super().__init__(file_path)
        raw = self._load({})
        if not isinstance(raw, dict):
            self._log.warning("Ignoring %s: top-level value is not an object", file_path)
            raw = {}
        self.data: Dict[str, Any] = raw

    def contains(self, key: str) -> bool:
        return key in self.data

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value
        self.save()

    def delete(self, key: str) -> bool:
        """Remove *key*.  Returns ``True`` if it was present."""
        if self.data.pop(key, _MISSING) is _MISSING:
            return False
        self.save()
        return True

    def save(self) -> None:
        self._save(self.data)
