"""Note store implementations."""

import itertools
import uuid
from typing import Optional

from .base import BaseNoteStore
from .document import Note


class InMemoryNoteStore(BaseNoteStore):
    """Note store kept in process memory.

    Stands in for the application's database in tests and local runs. All
    per-note operations are scoped to the owner, so one user can never read
    or delete another user's note.
    """

    def __init__(self, notes: Optional[list[Note]] = None) -> None:
        self._notes: dict[str, Note] = {}
        self._updated: dict[str, int] = {}
        self._clock = itertools.count()

        for note in notes or []:
            self._put(note)

    def _put(self, note: Note) -> Note:
        self._notes[note.id] = note
        self._updated[note.id] = next(self._clock)
        return note

    async def get_all_notes(self) -> list[Note]:
        """Return every note of every owner."""
        return list(self._notes.values())

    async def get_note(self, id: str, owner_id: str) -> Optional[Note]:
        note = self._notes.get(id)
        if note is None or note.owner_id != owner_id:
            return None
        return note

    async def list_notes(self, owner_id: str) -> list[Note]:
        """Return an owner's notes, most recently updated first."""
        notes = [note for note in self._notes.values() if note.owner_id == owner_id]
        notes.sort(key=lambda note: self._updated[note.id], reverse=True)
        return notes

    async def create(
        self,
        title: str,
        body: str,
        owner_id: str,
        id: Optional[str] = None,
    ) -> Note:
        note_id = id or uuid.uuid4().hex
        if note_id in self._notes:
            raise ValueError(f"Note {note_id} already exists")
        return self._put(Note(id=note_id, title=title, body=body, owner_id=owner_id))

    async def update(
        self,
        id: str,
        owner_id: str,
        title: Optional[str] = None,
        body: Optional[str] = None,
    ) -> Optional[Note]:
        note = await self.get_note(id, owner_id)
        if note is None:
            return None

        changes = {}
        if title is not None:
            changes["title"] = title
        if body is not None:
            changes["body"] = body
        return self._put(note.model_copy(update=changes))

    async def delete(self, id: str, owner_id: str) -> bool:
        if await self.get_note(id, owner_id) is None:
            return False
        del self._notes[id]
        del self._updated[id]
        return True

    def __len__(self) -> int:
        return len(self._notes)
