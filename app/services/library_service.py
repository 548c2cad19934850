"""Application state for the game library: the collection plus transient UI state."""
import logging
import random
import uuid
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from ..errors import EmptyPoolError, EntryNotFoundError, SelectionStateError
from ..models import EntryForm, LibraryEntry
from ..repositories.library_repository import LibraryRepository, now_ms
from . import transfer_service
from .selection_service import eligible_pool, order_for_display, pick_random

SPIN_IDLE = 'idle'
SPIN_SELECTING = 'selecting'


class LibraryService:
    """Owns the game collection and every piece of state derived from it.

    All mutations go through named operations (:meth:`add`, :meth:`edit`,
    :meth:`toggle_played`, :meth:`delete`, :meth:`spin`, ...) and are
    persisted through :class:`~app.repositories.library_repository.LibraryRepository`
    as soon as they happen.

    The "selected", "viewing", "editing" and "deleting" references are held
    as ids, never as copies, and are resolved against the live collection on
    every read.  Deleting an entry clears every reference to its id.

    Spins follow ``idle -> selecting -> idle``.  :meth:`start_spin` snapshots
    the pool; :meth:`finish_spin` picks from it and stores the winner as the
    current selection.  A second spin cannot start while one is running.
    """

    def __init__(self, repository: LibraryRepository,
                 clock: Callable[[], int] = now_ms,
                 rng: Optional[random.Random] = None,
                 exclude_played_from_spin: bool = False,
                 app_name: str = transfer_service.DEFAULT_APP_NAME) -> None:
        self._repo = repository
        self._clock = clock
        self._rng = rng
        self._log = logging.getLogger('repingo.library')
        self.exclude_played_from_spin = exclude_played_from_spin
        self.app_name = app_name

        self._last_created_at = self._max_created_at()

        self.selected_id: Optional[str] = None
        self.viewing_id: Optional[str] = None
        self.editing_id: Optional[str] = None
        self.deleting_id: Optional[str] = None

        self.spin_state = SPIN_IDLE
        self._spin_pool_ids: List[str] = []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _max_created_at(self) -> int:
        return max((e.sort_time for e in self._repo.data), default=0)

    def _next_created_at(self) -> int:
        # Never hand out a timestamp at or below one already assigned.
        created_at = max(self._clock(), self._last_created_at + 1)
        self._last_created_at = created_at
        return created_at

    def _require(self, entry_id: str) -> LibraryEntry:
        entry = self._repo.find(entry_id)
        if entry is None:
            raise EntryNotFoundError(entry_id)
        return entry

    def _resolve(self, entry_id: Optional[str]) -> Optional[LibraryEntry]:
        return self._repo.find(entry_id) if entry_id is not None else None

    def _forget(self, entry_id: str) -> None:
        """Clear every transient reference that points at *entry_id*."""
        if self.selected_id == entry_id:
            self.selected_id = None
        if self.viewing_id == entry_id:
            self.viewing_id = None
        if self.editing_id == entry_id:
            self.editing_id = None
        if self.deleting_id == entry_id:
            self.deleting_id = None
        if entry_id in self._spin_pool_ids:
            self._spin_pool_ids.remove(entry_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def entries(self) -> List[LibraryEntry]:
        """The collection in storage order (newest additions first)."""
        return list(self._repo.data)

    def get(self, entry_id: str) -> LibraryEntry:
        """Return the entry with *entry_id*.

        Raises:
            EntryNotFoundError: if no such entry exists.
        """
        return self._require(entry_id)

    def ordered(self) -> List[LibraryEntry]:
        """Return the collection in display order, derived afresh."""
        return order_for_display(self._repo.data)

    def pool(self, exclude_played: Optional[bool] = None) -> List[LibraryEntry]:
        """Return the entries eligible for a spin."""
        if exclude_played is None:
            exclude_played = self.exclude_played_from_spin
        return eligible_pool(self._repo.data, exclude_played=exclude_played)

    def stats(self) -> Dict[str, int]:
        total = len(self._repo.data)
        played = sum(1 for e in self._repo.data if e.played)
        return {'total': total, 'played': played, 'unplayed': total - played}

    @property
    def selected(self) -> Optional[LibraryEntry]:
        return self._resolve(self.selected_id)

    @property
    def viewing(self) -> Optional[LibraryEntry]:
        return self._resolve(self.viewing_id)

    @property
    def editing(self) -> Optional[LibraryEntry]:
        return self._resolve(self.editing_id)

    @property
    def deleting(self) -> Optional[LibraryEntry]:
        return self._resolve(self.deleting_id)

    @property
    def is_spinning(self) -> bool:
        return self.spin_state == SPIN_SELECTING

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add(self, form: EntryForm) -> LibraryEntry:
        """Validate *form* and add a new entry at the front of the collection.

        Raises:
            ValidationError: if name, description or addedBy is empty.
        """
        form.validate().raise_for_errors()
        entry = LibraryEntry(
            id=uuid.uuid4().hex,
            created_at=self._next_created_at(),
            **form.cleaned(),
        )
        self._repo.insert_front(entry)
        self._log.info("Added game %s (%s)", entry.id, entry.name)
        return entry

    def edit(self, entry_id: str, form: EntryForm) -> LibraryEntry:
        """Replace every field of *entry_id* except ``id`` and ``created_at``.

        Raises:
            EntryNotFoundError: if *entry_id* is unknown.
            ValidationError:    if a required text field is empty.
        """
        current = self._require(entry_id)
        form.validate().raise_for_errors()
        updated = replace(current, **form.cleaned())
        self._repo.replace(updated)
        if self.editing_id == entry_id:
            self.editing_id = None
        self._log.info("Updated game %s (%s)", entry_id, updated.name)
        return updated

    def toggle_played(self, entry_id: str) -> LibraryEntry:
        """Flip the played flag of *entry_id*.  Transient references are untouched."""
        updated = self._require(entry_id)
        updated = updated.with_played(not updated.played)
        self._repo.replace(updated)
        self._log.info("Game %s marked %s", entry_id,
                       'played' if updated.played else 'unplayed')
        return updated

    def delete(self, entry_id: str) -> LibraryEntry:
        """Remove *entry_id* and clear every transient reference to it.

        Raises:
            EntryNotFoundError: if *entry_id* is unknown.
        """
        removed = self._repo.delete(entry_id)
        if removed is None:
            raise EntryNotFoundError(entry_id)
        self._forget(entry_id)
        self._log.info("Deleted game %s (%s)", entry_id, removed.name)
        return removed

    # ------------------------------------------------------------------
    # View / edit / delete flows
    # ------------------------------------------------------------------

    def view(self, entry_id: str) -> LibraryEntry:
        entry = self._require(entry_id)
        self.viewing_id = entry_id
        return entry

    def close_view(self) -> None:
        self.viewing_id = None

    def begin_edit(self, entry_id: str) -> EntryForm:
        """Mark *entry_id* as being edited and return a form pre-filled from it."""
        entry = self._require(entry_id)
        self.editing_id = entry_id
        return EntryForm.from_entry(entry)

    def cancel_edit(self) -> None:
        self.editing_id = None

    def request_delete(self, entry_id: str) -> LibraryEntry:
        """Stage *entry_id* for deletion pending :meth:`confirm_delete`."""
        entry = self._require(entry_id)
        self.deleting_id = entry_id
        return entry

    def cancel_delete(self) -> None:
        self.deleting_id = None

    def confirm_delete(self) -> Optional[LibraryEntry]:
        """Delete the staged entry.  Returns ``None`` when nothing is staged."""
        if self.deleting_id is None:
            return None
        entry_id = self.deleting_id
        self.deleting_id = None
        if not self._repo.contains(entry_id):
            return None
        return self.delete(entry_id)

    # ------------------------------------------------------------------
    # Spinning
    # ------------------------------------------------------------------

    def start_spin(self, exclude_played: Optional[bool] = None) -> List[LibraryEntry]:
        """Enter the selecting state and return the pool being spun over.

        Raises:
            SelectionStateError: if a spin is already in progress.
            EmptyPoolError:      if there is nothing to pick from.
        """
        if self.spin_state == SPIN_SELECTING:
            raise SelectionStateError("A spin is already in progress")
        candidates = self.pool(exclude_played)
        if not candidates:
            raise EmptyPoolError()
        self._spin_pool_ids = [e.id for e in candidates]
        self.spin_state = SPIN_SELECTING
        self._log.debug("Spin started over %d game(s)", len(candidates))
        return candidates

    def finish_spin(self) -> LibraryEntry:
        """Pick the winner, store it as the current selection and return to idle.

        Raises:
            SelectionStateError: if no spin is in progress.
            EmptyPoolError:      if every pooled entry was deleted mid-spin.
        """
        if self.spin_state != SPIN_SELECTING:
            raise SelectionStateError("No spin in progress")
        candidates = [e for e in (self._repo.find(i) for i in self._spin_pool_ids)
                      if e is not None]
        try:
            winner = pick_random(candidates, self._rng)
        finally:
            self.spin_state = SPIN_IDLE
            self._spin_pool_ids = []
        self.selected_id = winner.id
        self._log.info("Spin landed on %s (%s)", winner.id, winner.name)
        return winner

    def spin(self, exclude_played: Optional[bool] = None) -> LibraryEntry:
        """Run a whole spin: :meth:`start_spin` then :meth:`finish_spin`."""
        self.start_spin(exclude_played)
        return self.finish_spin()

    def clear_selection(self) -> None:
        self.selected_id = None

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def default_export_filename(self) -> str:
        return transfer_service.export_filename(self.app_name)

    def export_text(self) -> str:
        return transfer_service.dumps(self._repo.data)

    def export_to(self, filepath: Optional[str] = None) -> str:
        """Write the collection to *filepath* (default: dated file name).

        Returns:
            The path written.

        Raises:
            OSError: on I/O failure.
        """
        filepath = filepath or self.default_export_filename()
        transfer_service.export_to(self._repo.data, filepath)
        self._log.info("Exported %d game(s) to %s", len(self._repo.data), filepath)
        return filepath

    def import_from(self, filepath: str) -> int:
        """Replace the collection with the contents of *filepath*.

        Returns:
            Number of games imported.

        Raises:
            ImportParseError: if the file is unreadable or malformed; the
                collection is left untouched.
        """
        return self._replace_collection(transfer_service.read_from(filepath), filepath)

    def import_text(self, text: str) -> int:
        """Like :meth:`import_from` but for an in-memory document."""
        return self._replace_collection(transfer_service.loads(text), '<upload>')

    def _replace_collection(self, entries: List[LibraryEntry], source: str) -> int:
        self._repo.replace_all(entries)
        present = {e.id for e in entries}
        for entry_id in (self.selected_id, self.viewing_id,
                         self.editing_id, self.deleting_id):
            if entry_id is not None and entry_id not in present:
                self._forget(entry_id)
        self._last_created_at = max(self._last_created_at, self._max_created_at())
        self._log.info("Imported %d game(s) from %s", len(entries), source)
        return len(entries)
