"""Tests for cascading a title rename through referencing notes."""
import pytest

from notelinks.exceptions import (
    ErrorCode,
    NoteNotFoundError,
    NoteValidationError,
    RenameCascadeError,
    StoreError,
)
from notelinks.models.schema import Note, RenameResult
from notelinks.services.link_service import LinkService
from notelinks.services.rename_cascade import plan_rename, rewrite_content, rewrite_links
from tests.fakes import CountingNoteStore, FlakyNoteStore


def _draft_notes():
    return [
        Note(
            id="a",
            title="Alpha",
            content="See [[Draft]] and [[Draft|my draft]]",
            outgoing_links=["Draft"],
        ),
        Note(id="b", title="Beta", content="[[Draft]] again", outgoing_links=["Other", "Draft"]),
        Note(id="c", title="Gamma", content="Unrelated [[Other]]", outgoing_links=["Other"]),
        Note(id="d", title="Delta", content="Also [[Draft]]", outgoing_links=["Draft"]),
    ]


class TestRewriteHelpers:
    """Tests for the pure rewrite functions."""

    def test_rewrites_both_link_forms(self):
        assert (
            rewrite_content("See [[Draft]] and [[Draft|my draft]]", "Draft", "Final")
            == "See [[Final]] and [[Final|my draft]]"
        )

    def test_leaves_padded_links_and_plain_text(self):
        content = "Draft text, [[ Draft ]] and [[Drafts]] and [[Draft]]"

        assert rewrite_content(content, "Draft", "Final") == (
            "Draft text, [[ Draft ]] and [[Drafts]] and [[Final]]"
        )

    def test_rewrite_links_keeps_order_and_multiplicity(self):
        assert rewrite_links(["Draft", "X", "Draft"], "Draft", "Final") == [
            "Final",
            "X",
            "Final",
        ]

    def test_plan_selects_by_outgoing_links(self):
        notes = _draft_notes() + [
            Note(id="e", title="Epsilon", content="[[Draft]] unsaved", outgoing_links=[])
        ]

        plan = plan_rename(notes, "Draft", "Final")

        assert [u.note_id for u in plan] == ["a", "b", "d"]
        assert plan[1].updated_note.outgoing_links == ["Other", "Final"]
        # Inputs are not mutated
        assert notes[0].content == "See [[Draft]] and [[Draft|my draft]]"


class TestUpdateLinksOnRename:
    """Tests for LinkService.update_links_on_rename."""

    @pytest.mark.anyio
    async def test_rewrites_content_and_links(self):
        store = CountingNoteStore(
            [
                Note(
                    id="a",
                    title="Alpha",
                    content="See [[Draft]] and [[Draft|my draft]]",
                    outgoing_links=["Draft"],
                )
            ]
        )

        result = await LinkService(store).update_links_on_rename("Draft", "Final")

        note = await store.get_note("a")
        assert note.content == "See [[Final]] and [[Final|my draft]]"
        assert note.outgoing_links == ["Final"]
        assert result.succeeded_ids == ["a"]
        assert result.complete

    @pytest.mark.anyio
    async def test_only_referencing_notes_are_written(self):
        store = CountingNoteStore(_draft_notes())

        result = await LinkService(store).update_links_on_rename("Draft", "Final")

        assert result.planned_ids == ["a", "b", "d"]
        assert store.calls["update_note"] == 3
        assert store.calls["get_all_notes"] == 1
        untouched = await store.get_note("c")
        assert untouched.outgoing_links == ["Other"]

    @pytest.mark.anyio
    async def test_backlinks_follow_the_rename(self):
        store = CountingNoteStore(_draft_notes())
        service = LinkService(store)

        await service.update_links_on_rename("Draft", "Final")

        assert await service.get_backlinks("Draft") == []
        assert [n.id for n in await service.get_backlinks("Final")] == ["a", "b", "d"]

    @pytest.mark.anyio
    async def test_rerun_is_idempotent(self):
        store = CountingNoteStore(_draft_notes())
        service = LinkService(store)

        await service.update_links_on_rename("Draft", "Final")
        second = await service.update_links_on_rename("Draft", "Final")

        assert second.planned_ids == []
        assert store.calls["update_note"] == 3

    @pytest.mark.anyio
    async def test_same_title_is_noop_without_fetch(self):
        store = CountingNoteStore(_draft_notes())

        result = await LinkService(store).update_links_on_rename("Draft", "Draft")

        assert result.planned_ids == []
        assert store.calls["get_all_notes"] == 0

    @pytest.mark.anyio
    @pytest.mark.parametrize("new_title", ["", "  "])
    async def test_blank_new_title_rejected(self, new_title):
        store = CountingNoteStore(_draft_notes())

        with pytest.raises(NoteValidationError):
            await LinkService(store).update_links_on_rename("Draft", new_title)
        assert store.calls["get_all_notes"] == 0

    @pytest.mark.anyio
    async def test_new_title_is_trimmed(self):
        store = CountingNoteStore(_draft_notes())

        result = await LinkService(store).update_links_on_rename("Draft", "  Final ")

        assert result.new_title == "Final"
        note = await store.get_note("a")
        assert note.content == "See [[Final]] and [[Final|my draft]]"
        assert note.outgoing_links == ["Final"]

    @pytest.mark.anyio
    async def test_fetch_failure_is_wrapped(self):
        store = FlakyNoteStore(_draft_notes(), fail_reads=True)

        with pytest.raises(StoreError) as exc_info:
            await LinkService(store).update_links_on_rename("Draft", "Final")

        assert exc_info.value.operation == "update_links_on_rename"
        assert store.attempted_updates == []


class TestPartialRename:
    """Tests for cascades where some writes fail."""

    @pytest.mark.anyio
    async def test_first_failure_stops_and_raises_with_result(self):
        store = FlakyNoteStore(_draft_notes(), fail_update_ids={"b"})

        with pytest.raises(RenameCascadeError) as exc_info:
            await LinkService(store).update_links_on_rename("Draft", "Final")

        error = exc_info.value
        assert error.code == ErrorCode.RENAME_CASCADE_PARTIAL
        assert error.succeeded_ids == ["a"]
        assert error.failed_ids == ["b"]
        assert error.result.skipped_ids == ["d"]
        assert "permission denied" in error.result.failed["b"]
        assert isinstance(error.original_error, StoreError)
        assert store.attempted_updates == ["a", "b"]

        # Partially applied: a moved, b and d still point at the old title
        assert (await store.get_note("a")).outgoing_links == ["Final"]
        assert (await store.get_note("b")).outgoing_links == ["Other", "Draft"]
        assert (await store.get_note("d")).outgoing_links == ["Draft"]

    @pytest.mark.anyio
    async def test_failure_on_first_note_attempts_nothing_else(self):
        notes = [
            Note(id=note_id, title=note_id.upper(), content="[[Draft]]", outgoing_links=["Draft"])
            for note_id in ("a", "b", "c")
        ]
        store = FlakyNoteStore(notes, fail_update_ids={"a"})

        result = await LinkService(store).update_links_on_rename(
            "Draft", "Final", raise_on_failure=False
        )

        assert store.attempted_updates == ["a"]
        assert result.succeeded_ids == []
        assert list(result.failed) == ["a"]
        assert result.skipped_ids == ["b", "c"]
        assert not result.complete

    @pytest.mark.anyio
    async def test_continue_past_failures_when_asked(self):
        store = FlakyNoteStore(_draft_notes(), fail_update_ids={"b"})

        result = await LinkService(store).update_links_on_rename(
            "Draft", "Final", stop_on_failure=False, raise_on_failure=False
        )

        assert store.attempted_updates == ["a", "b", "d"]
        assert result.succeeded_ids == ["a", "d"]
        assert list(result.failed) == ["b"]
        assert result.skipped_ids == []

    @pytest.mark.anyio
    async def test_retry_only_touches_pending_notes(self):
        store = FlakyNoteStore(_draft_notes(), fail_update_ids={"b"})
        service = LinkService(store)

        first = await service.update_links_on_rename("Draft", "Final", raise_on_failure=False)
        assert first.pending_ids == ["b", "d"]

        store.fail_update_ids.clear()
        retry = await service.update_links_on_rename("Draft", "Final")

        assert retry.planned_ids == ["b", "d"]
        assert retry.complete
        assert (await store.get_note("b")).content == "[[Final]] again"

    @pytest.mark.anyio
    async def test_all_failed_uses_failed_code(self):
        store = FlakyNoteStore(_draft_notes(), fail_update_ids={"a", "b", "d"})

        with pytest.raises(RenameCascadeError) as exc_info:
            await LinkService(store).update_links_on_rename(
                "Draft", "Final", stop_on_failure=False
            )

        assert exc_info.value.code == ErrorCode.RENAME_CASCADE_FAILED
        assert exc_info.value.details["failed_count"] == 3

    @pytest.mark.anyio
    async def test_note_deleted_mid_cascade_is_recorded(self):
        """A missing note on write is recorded like any other failed write."""
        store = CountingNoteStore(_draft_notes())
        service = LinkService(store)
        real_update = store.update_note

        async def update_with_vanished(note_id, note):
            if note_id == "b":
                raise NoteNotFoundError(note_id)
            await real_update(note_id, note)

        store.update_note = update_with_vanished

        result = await service.update_links_on_rename("Draft", "Final", raise_on_failure=False)

        assert result.succeeded_ids == ["a"]
        assert list(result.failed) == ["b"]
        assert result.skipped_ids == ["d"]

    def test_result_to_dict(self):
        result = RenameResult(
            old_title="Draft",
            new_title="Final",
            planned_ids=["a", "b"],
            succeeded_ids=["a"],
            failed={"b": "boom"},
        )

        assert result.to_dict() == {
            "old_title": "Draft",
            "new_title": "Final",
            "planned_ids": ["a", "b"],
            "succeeded_ids": ["a"],
            "failed": {"b": "boom"},
            "skipped_ids": [],
            "complete": False,
        }
