"""Relational note store backed by SQLAlchemy."""
import functools
import logging
from typing import Any, Callable, List, Optional, TypeVar

import anyio
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from notelinks.exceptions import ErrorCode, NoteNotFoundError, StoreError
from notelinks.models.db_models import DBNote, get_session_factory, init_db
from notelinks.models.schema import Note, ensure_timezone_aware, utc_now
from notelinks.storage.base import NoteStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _to_note(db_note: DBNote) -> Note:
    return Note(
        id=db_note.id,
        title=db_note.title,
        content=db_note.content or "",
        outgoing_links=list(db_note.outgoing_links or []),
        tags=list(db_note.tags or []),
        created_at=ensure_timezone_aware(db_note.created_at),
        updated_at=ensure_timezone_aware(db_note.updated_at),
    )


class SqlNoteStore(NoteStore):
    """Note store over a SQL database.

    SQLAlchemy sessions are blocking, so every operation runs its session
    on a worker thread via ``anyio.to_thread.run_sync``. Notes come back
    ordered by creation time, then ID, which makes first-match title
    lookups deterministic.
    """

    def __init__(self, engine: Optional[Engine] = None, db_url: Optional[str] = None):
        """Initialize the store.

        Args:
            engine: Pre-configured SQLAlchemy engine. Takes precedence over db_url.
            db_url: Database URL; defaults to the configured SQLite database.
        """
        self.engine = engine if engine is not None else init_db(db_url)
        self.session_factory = get_session_factory(self.engine)

    async def _run(self, operation: str, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking session function off the event loop.

        SQLAlchemy failures and rows the Note model rejects surface as
        ``StoreError`` tagged with the store operation.
        """
        try:
            return await anyio.to_thread.run_sync(functools.partial(func, *args))
        except IntegrityError as e:
            raise StoreError(
                f"Constraint violated during {operation}",
                operation=operation,
                code=ErrorCode.STORE_WRITE_FAILED,
                original_error=e,
            ) from e
        except SQLAlchemyError as e:
            raise StoreError(
                f"Database error during {operation}",
                operation=operation,
                code=ErrorCode.STORE_CONNECTION_FAILED,
                original_error=e,
            ) from e
        except ValidationError as e:
            raise StoreError(
                f"Invalid note data during {operation}",
                operation=operation,
                code=ErrorCode.STORE_READ_FAILED,
                original_error=e,
            ) from e

    # ------------------------------------------------------------------
    # Blocking helpers (run on worker threads)
    # ------------------------------------------------------------------

    def _fetch_all(self) -> List[Note]:
        with self.session_factory() as session:
            rows = session.scalars(
                select(DBNote).order_by(DBNote.created_at, DBNote.id)
            ).all()
            return [_to_note(row) for row in rows]

    def _fetch_by_title(self, title: str) -> Optional[Note]:
        with self.session_factory() as session:
            row = session.scalars(
                select(DBNote)
                .where(DBNote.title == title)
                .order_by(DBNote.created_at, DBNote.id)
                .limit(1)
            ).first()
            return _to_note(row) if row else None

    def _update(self, note_id: str, note: Note) -> None:
        with self.session_factory() as session:
            db_note = session.get(DBNote, note_id)
            if db_note is None:
                raise NoteNotFoundError(note_id)
            db_note.title = note.title
            db_note.content = note.content
            db_note.outgoing_links = list(note.outgoing_links)
            db_note.tags = list(note.tags)
            db_note.updated_at = utc_now()
            session.commit()

    def _insert(self, note: Note) -> str:
        with self.session_factory() as session:
            session.add(
                DBNote(
                    id=note.id,
                    title=note.title,
                    content=note.content,
                    outgoing_links=list(note.outgoing_links),
                    tags=list(note.tags),
                    created_at=note.created_at,
                    updated_at=note.updated_at,
                )
            )
            session.commit()
        return note.id

    # ------------------------------------------------------------------
    # NoteStore API
    # ------------------------------------------------------------------

    async def get_all_notes(self) -> List[Note]:
        return await self._run("get_all_notes", self._fetch_all)

    async def get_note_by_title(self, title: str) -> Optional[Note]:
        return await self._run("get_note_by_title", self._fetch_by_title, title)

    async def update_note(self, note_id: str, note: Note) -> None:
        await self._run("update_note", self._update, note_id, note)
        logger.debug(f"Updated note {note_id}")

    async def create_note(self, note: Note) -> str:
        note_id = await self._run("create_note", self._insert, note)
        logger.debug(f"Created note {note_id} ({note.title!r})")
        return note_id

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self.engine.dispose()
