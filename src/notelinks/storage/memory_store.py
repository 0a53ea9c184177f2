"""In-process note store backed by a dict."""
import logging
from typing import Dict, Iterable, List, Optional

from notelinks.exceptions import ErrorCode, NoteNotFoundError, StoreError
from notelinks.models.schema import Note, utc_now
from notelinks.storage.base import NoteStore

logger = logging.getLogger(__name__)


class InMemoryNoteStore(NoteStore):
    """Note store kept entirely in memory.

    Notes are returned in insertion order as deep copies, so callers can
    modify what they fetch without touching the stored state. Useful for
    tests and for embedding the engine where notes already live in
    memory.
    """

    def __init__(self, notes: Optional[Iterable[Note]] = None):
        self._notes: Dict[str, Note] = {}
        for note in notes or []:
            self._notes[note.id] = note.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._notes)

    async def get_all_notes(self) -> List[Note]:
        return [note.model_copy(deep=True) for note in self._notes.values()]

    async def get_note_by_title(self, title: str) -> Optional[Note]:
        for note in self._notes.values():
            if note.title == title:
                return note.model_copy(deep=True)
        return None

    async def get_note(self, note_id: str) -> Optional[Note]:
        note = self._notes.get(note_id)
        return note.model_copy(deep=True) if note else None

    async def update_note(self, note_id: str, note: Note) -> None:
        if note_id not in self._notes:
            raise NoteNotFoundError(note_id)
        self._notes[note_id] = note.model_copy(
            update={"id": note_id, "updated_at": utc_now()}, deep=True
        )
        logger.debug(f"Updated note {note_id}")

    async def create_note(self, note: Note) -> str:
        if note.id in self._notes:
            raise StoreError(
                f"Note with ID '{note.id}' already exists",
                operation="create_note",
                code=ErrorCode.STORE_WRITE_FAILED,
            )
        self._notes[note.id] = note.model_copy(deep=True)
        logger.debug(f"Created note {note.id} ({note.title!r})")
        return note.id
