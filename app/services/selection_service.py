"""Ordering and random selection over the game collection.

Both operations are pure with respect to their input: they read the
sequence they are given and return a new list or one of its elements.
"""
import random
from typing import List, Optional, Sequence, Tuple

from ..errors import EmptyPoolError
from ..models import LibraryEntry


def partition_by_played(entries: Sequence[LibraryEntry]
                        ) -> Tuple[List[LibraryEntry], List[LibraryEntry]]:
    """Split *entries* into ``(unplayed, played)``, keeping input order."""
    unplayed = [e for e in entries if not e.played]
    played = [e for e in entries if e.played]
    return unplayed, played


def order_for_display(entries: Sequence[LibraryEntry]) -> List[LibraryEntry]:
    """Return the display order of *entries*.

    Unplayed games come first, newest to oldest; played games follow,
    oldest to newest.  A missing ``created_at`` sorts as 0.
    """
    unplayed, played = partition_by_played(entries)
    unplayed.sort(key=lambda e: e.sort_time, reverse=True)
    played.sort(key=lambda e: e.sort_time)
    return unplayed + played


def eligible_pool(entries: Sequence[LibraryEntry],
                  exclude_played: bool = False) -> List[LibraryEntry]:
    """Return the entries a spin may land on."""
    if exclude_played:
        return [e for e in entries if not e.played]
    return list(entries)


def pick_random(entries: Sequence[LibraryEntry],
                rng: Optional[random.Random] = None) -> LibraryEntry:
    """Pick one entry uniformly at random.

    Args:
        entries: Pool to choose from.  Not modified.
        rng:     Optional ``random.Random`` for reproducible picks; the
                 module-level generator is used otherwise.

    Raises:
        EmptyPoolError: if *entries* is empty.
    """
    if not entries:
        raise EmptyPoolError()
    chooser = rng if rng is not None else random
    return chooser.choice(list(entries))
