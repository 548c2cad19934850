"""Repository package: expose all concrete repositories from one import."""
from .kv_store import KeyValueStore
from .library_repository import LibraryRepository, STORAGE_KEY

__all__ = [
    'KeyValueStore',
    'LibraryRepository',
    'STORAGE_KEY',
]
