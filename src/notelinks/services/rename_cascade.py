"""Planning of title-rename cascades.

A rename is applied as a saga: every per-note rewrite is computed here up
front, then the link service writes them one at a time. Nothing in this
module touches the store.
"""
from typing import List, Sequence

from notelinks.models.schema import Note, PlannedUpdate
from notelinks.services.link_parser import LINK_CLOSE, LINK_OPEN


def rewrite_content(content: str, old_title: str, new_title: str) -> str:
    """Point ``[[old_title]]`` and ``[[old_title|...]]`` links at ``new_title``.

    Replacement is literal. Links written with padding inside the
    brackets, such as ``[[ old_title ]]``, are not rewritten.
    """
    content = content.replace(
        f"{LINK_OPEN}{old_title}{LINK_CLOSE}", f"{LINK_OPEN}{new_title}{LINK_CLOSE}"
    )
    return content.replace(f"{LINK_OPEN}{old_title}|", f"{LINK_OPEN}{new_title}|")


def rewrite_links(outgoing_links: Sequence[str], old_title: str, new_title: str) -> List[str]:
    """Replace every entry equal to ``old_title``, keeping order and multiplicity."""
    return [new_title if title == old_title else title for title in outgoing_links]


def plan_rename(notes: Sequence[Note], old_title: str, new_title: str) -> List[PlannedUpdate]:
    """Compute the rewritten note for every note linking to ``old_title``.

    Notes are selected by their ``outgoing_links``, not by scanning content,
    so a note that was already rewritten is not selected again.
    """
    plan: List[PlannedUpdate] = []
    for note in notes:
        if not note.links_to(old_title):
            continue
        updated = note.model_copy(
            update={
                "content": rewrite_content(note.content, old_title, new_title),
                "outgoing_links": rewrite_links(note.outgoing_links, old_title, new_title),
            },
            deep=True,
        )
        plan.append(PlannedUpdate(note_id=note.id, title=note.title, updated_note=updated))
    return plan
