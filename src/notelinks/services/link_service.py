"""Service layer for note links, backlinks and the note graph."""

import logging
from typing import Dict, List, Optional

from notelinks.config import config
from notelinks.exceptions import (
    ConfigurationError,
    ErrorCode,
    NoteNotFoundError,
    NoteValidationError,
    RenameCascadeError,
    StoreError,
)
from notelinks.models.schema import GraphData, LinkOccurrence, Note, RenameResult
from notelinks.observability import traced
from notelinks.services.graph_builder import build_graph
from notelinks.services.link_resolver import resolve_links
from notelinks.services.rename_cascade import plan_rename
from notelinks.services.suggestions import rank_title_suggestions
from notelinks.storage.base import NoteStore

logger = logging.getLogger(__name__)


def _wrap_store_error(operation: str, error: StoreError) -> StoreError:
    """Re-tag a store failure with the service operation that hit it."""
    return StoreError(
        f"{operation} failed: {error.message}",
        operation=operation,
        code=error.code,
        original_error=error,
    )


class LinkService:
    """Link engine over an injected note store.

    Every operation fetches what it needs from the store on each call and
    computes its view in memory; nothing is cached between calls, so two
    concurrent callers may see different snapshots.
    """

    def __init__(self, store: NoteStore, suggestion_limit: Optional[int] = None):
        """Initialize the service.

        Args:
            store: Note store the engine reads from and writes rename
                cascades to.
            suggestion_limit: Maximum number of title suggestions. Defaults
                to ``config.suggestion_limit``.
        """
        if suggestion_limit is not None and suggestion_limit < 1:
            raise ConfigurationError(
                "suggestion_limit must be >= 1", config_key="suggestion_limit"
            )
        self.store = store
        self.suggestion_limit = (
            suggestion_limit if suggestion_limit is not None else config.suggestion_limit
        )

    async def _fetch_all(self, operation: str) -> List[Note]:
        try:
            return await self.store.get_all_notes()
        except StoreError as e:
            logger.error(f"{operation}: failed to fetch notes: {e}")
            raise _wrap_store_error(operation, e) from e

    # =========================================================================
    # Lookups
    # =========================================================================

    @traced("get_backlinks")
    async def get_backlinks(self, title: str) -> List[Note]:
        """Notes whose outgoing links contain ``title`` (exact, case-sensitive)."""
        notes = await self._fetch_all("get_backlinks")
        return [note for note in notes if note.links_to(title)]

    @traced("get_note_by_title")
    async def get_note_by_title(self, title: str) -> Optional[Note]:
        """The first note titled ``title``, or None."""
        try:
            return await self.store.get_note_by_title(title)
        except StoreError as e:
            logger.error(f"get_note_by_title: store failure for {title!r}: {e}")
            raise _wrap_store_error("get_note_by_title", e) from e

    @traced("resolve_links")
    async def resolve_links(self, occurrences: List[LinkOccurrence]) -> List[LinkOccurrence]:
        """Mark occurrences whose target matches an existing note title."""
        if not occurrences:
            return occurrences
        notes = await self._fetch_all("resolve_links")
        return resolve_links(occurrences, {note.title for note in notes})

    @traced("check_notes_exist")
    async def check_notes_exist(self, titles: List[str]) -> Dict[str, bool]:
        """Map each title to whether a note with that exact title exists.

        Returns an empty mapping, without raising, when the store fails.
        """
        if not titles:
            return {}
        try:
            notes = await self.store.get_all_notes()
        except StoreError as e:
            logger.warning(f"check_notes_exist: store unavailable, returning no results: {e}")
            return {}
        existing = {note.title for note in notes}
        return {title: title in existing for title in titles}

    @traced("get_note_title_suggestions")
    async def get_note_title_suggestions(self, partial: str) -> List[str]:
        """Ranked titles containing ``partial``; see ``rank_title_suggestions``.

        Empty input returns no suggestions without touching the store, and
        a store failure degrades to an empty list.
        """
        if not partial:
            return []
        try:
            notes = await self.store.get_all_notes()
        except StoreError as e:
            logger.warning(f"get_note_title_suggestions: store unavailable: {e}")
            return []
        return rank_title_suggestions(
            partial, (note.title for note in notes), limit=self.suggestion_limit
        )

    # =========================================================================
    # Graph
    # =========================================================================

    @traced("build_note_graph")
    async def build_note_graph(self) -> GraphData:
        """Build the graph of all notes from a single fresh fetch."""
        notes = await self._fetch_all("build_note_graph")
        return build_graph(notes)

    # =========================================================================
    # Writes
    # =========================================================================

    @traced("create_note_from_link")
    async def create_note_from_link(self, title: str) -> str:
        """Create an empty note for a dangling link target and return its ID."""
        if not title or not title.strip():
            raise NoteValidationError(
                "Title is required to create a note from a link",
                field="title",
                code=ErrorCode.NOTE_TITLE_REQUIRED,
            )
        note = Note(title=title.strip(), content="")
        try:
            note_id = await self.store.create_note(note)
        except StoreError as e:
            logger.error(f"create_note_from_link: could not create {title!r}: {e}")
            raise _wrap_store_error("create_note_from_link", e) from e
        logger.info(f"Created note {note_id} from link [[{note.title}]]")
        return note_id

    @traced("update_links_on_rename")
    async def update_links_on_rename(
        self,
        old_title: str,
        new_title: str,
        *,
        stop_on_failure: bool = True,
        raise_on_failure: bool = True,
    ) -> RenameResult:
        """Point every link to ``old_title`` at ``new_title``.

        All rewrites are planned from one fetch, then written one note at a
        time. There is no cross-note transaction: when a write fails the
        notes already written keep the new title, and by default the
        remaining notes are not attempted. Re-running is safe since
        updated notes no longer list ``old_title`` and are skipped.

        Args:
            old_title: Title being replaced.
            new_title: Replacement title. Surrounding whitespace is stripped.
            stop_on_failure: Stop at the first failed write and record the
                remaining notes as skipped. When False every planned note
                is attempted.
            raise_on_failure: Raise ``RenameCascadeError`` when any write
                failed; otherwise return the partial result.

        Returns:
            Which notes were updated, failed or skipped.

        Raises:
            NoteValidationError: If ``new_title`` is empty.
            StoreError: If the notes could not be fetched.
            RenameCascadeError: If any write failed and ``raise_on_failure``.
        """
        if not new_title or not new_title.strip():
            raise NoteValidationError(
                "New title cannot be empty",
                field="new_title",
                code=ErrorCode.NOTE_TITLE_REQUIRED,
            )
        new_title = new_title.strip()
        result = RenameResult(old_title=old_title, new_title=new_title)
        if old_title == new_title:
            return result

        notes = await self._fetch_all("update_links_on_rename")
        plan = plan_rename(notes, old_title, new_title)
        result.planned_ids = [update.note_id for update in plan]
        logger.info(
            f"Renaming [[{old_title}]] -> [[{new_title}]] in {len(plan)} notes"
        )

        first_error: Optional[Exception] = None
        for index, update in enumerate(plan):
            try:
                await self.store.update_note(update.note_id, update.updated_note)
            except (StoreError, NoteNotFoundError) as e:
                logger.warning(
                    f"Rename cascade: failed to update note {update.note_id} "
                    f"({update.title!r}): {e}"
                )
                result.failed[update.note_id] = str(e)
                if first_error is None:
                    first_error = e
                if stop_on_failure:
                    result.skipped_ids = [u.note_id for u in plan[index + 1:]]
                    break
                continue
            result.succeeded_ids.append(update.note_id)

        if result.complete:
            return result

        logger.error(
            f"Rename cascade [[{old_title}]] -> [[{new_title}]] partially applied: "
            f"{len(result.succeeded_ids)} updated, {len(result.failed)} failed, "
            f"{len(result.skipped_ids)} skipped"
        )
        if raise_on_failure:
            raise RenameCascadeError(
                f"Rename from {old_title!r} to {new_title!r} was not applied to "
                f"{len(result.pending_ids)} of {len(plan)} notes",
                result=result,
                original_error=first_error,
            )
        return result
