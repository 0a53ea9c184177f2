"""Wiki-link parsing for note content.

Recognizes ``[[Target]]`` and ``[[Target|Display]]``. Everything here is a
pure text transform: no store access and no exceptions for malformed
input, which simply fails to match.
"""
import re
from typing import List, Optional, Tuple

from notelinks.models.schema import LinkOccurrence, LinkQuery

# [[Target]] or [[Target|Display]]; the target cannot contain ']' or '|'
LINK_PATTERN = re.compile(r"\[\[([^\]|]+)(?:\|([^\]]+))?\]\]")

LINK_OPEN = "[["
LINK_CLOSE = "]]"


def parse_links(content: str) -> List[LinkOccurrence]:
    """Extract every wiki-link occurrence from ``content`` in document order.

    Target and display text are stripped of surrounding whitespace and the
    display text falls back to the target when no ``|Display`` part is
    present. Occurrences whose stripped target is empty are dropped.

    Args:
        content: Text to scan.

    Returns:
        Occurrences with their match spans; ``exists`` is always False.
    """
    occurrences: List[LinkOccurrence] = []
    if not content:
        return occurrences

    for match in LINK_PATTERN.finditer(content):
        target = match.group(1).strip()
        if not target:
            continue
        display = match.group(2)
        occurrences.append(
            LinkOccurrence(
                target_title=target,
                display_text=display.strip() if display is not None else target,
                start_offset=match.start(),
                end_offset=match.end(),
            )
        )
    return occurrences


def extract_outgoing_links(content: str) -> List[str]:
    """Unique link targets in ``content``, in order of first appearance.

    This is what an editor stores as a note's outgoing links on save.
    """
    seen = set()
    targets: List[str] = []
    for occurrence in parse_links(content):
        if occurrence.target_title not in seen:
            seen.add(occurrence.target_title)
            targets.append(occurrence.target_title)
    return targets


def find_link_query(text: str, cursor: int) -> Optional[LinkQuery]:
    """Detect an unfinished ``[[`` link immediately before the cursor.

    Returns None when there is no ``[[`` before the cursor or when the
    last one is already closed by ``]]`` before the cursor.
    """
    if cursor < 0 or cursor > len(text):
        return None
    before_cursor = text[:cursor]
    link_start = before_cursor.rfind(LINK_OPEN)
    if link_start == -1:
        return None
    if LINK_CLOSE in before_cursor[link_start:]:
        return None
    return LinkQuery(
        start_offset=link_start,
        query=before_cursor[link_start + len(LINK_OPEN):],
    )


def insert_link(text: str, link_start: int, cursor: int, title: str) -> Tuple[str, int]:
    """Replace the partial link between ``link_start`` and ``cursor`` with ``[[title]]``.

    Returns:
        The new text and the cursor position right after the inserted link.
    """
    link = f"{LINK_OPEN}{title}{LINK_CLOSE}"
    new_text = text[:link_start] + link + text[cursor:]
    return new_text, link_start + len(link)
