"""Note store collaborators for the notelinks engine."""

from notelinks.storage.base import NoteStore
from notelinks.storage.memory_store import InMemoryNoteStore
from notelinks.storage.sql_store import SqlNoteStore

__all__ = [
    "NoteStore",
    "InMemoryNoteStore",
    "SqlNoteStore",
]
