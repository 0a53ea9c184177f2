"""Abstract note store consumed by the link engine."""
from abc import ABC, abstractmethod
from typing import List, Optional

from notelinks.models.schema import Note


class NoteStore(ABC):
    """Async collaborator that owns the note collection.

    The link engine only reads notes and, for rename cascades, writes
    them back one at a time. Implementations raise ``StoreError`` for
    connectivity or validation problems and ``NoteNotFoundError`` when
    asked to update a note that does not exist. Cancellation and
    timeouts are the implementation's concern.
    """

    @abstractmethod
    async def get_all_notes(self) -> List[Note]:
        """Return every note, in a stable order."""

    @abstractmethod
    async def get_note_by_title(self, title: str) -> Optional[Note]:
        """Return the first note whose title equals ``title`` exactly."""

    @abstractmethod
    async def update_note(self, note_id: str, note: Note) -> None:
        """Replace the stored note ``note_id`` with ``note``."""

    @abstractmethod
    async def create_note(self, note: Note) -> str:
        """Persist a new note and return its ID."""
