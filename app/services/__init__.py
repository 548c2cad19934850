"""Services package: expose the library controller and engine from one import."""
from .library_service import LibraryService, SPIN_IDLE, SPIN_SELECTING
from .selection_service import (
    eligible_pool,
    order_for_display,
    partition_by_played,
    pick_random,
)
from . import transfer_service

__all__ = [
    'LibraryService',
    'SPIN_IDLE',
    'SPIN_SELECTING',
    'eligible_pool',
    'order_for_display',
    'partition_by_played',
    'pick_random',
    'transfer_service',
]
