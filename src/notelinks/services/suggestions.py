"""Ranked autocomplete over note titles."""
from typing import Iterable, List, Tuple

DEFAULT_SUGGESTION_LIMIT = 10

# Ranking tiers, best first
_EXACT, _PREFIX, _SUBSTRING = 0, 1, 2


def _rank_key(title: str, partial_lower: str) -> Tuple[int, str]:
    title_lower = title.lower()
    if title_lower == partial_lower:
        tier = _EXACT
    elif title_lower.startswith(partial_lower):
        tier = _PREFIX
    else:
        tier = _SUBSTRING
    return (tier, title)


def rank_title_suggestions(
    partial: str, titles: Iterable[str], limit: int = DEFAULT_SUGGESTION_LIMIT
) -> List[str]:
    """Titles containing ``partial`` (case-insensitive), best matches first.

    Exact matches rank first, then prefix matches, then other substring
    matches. Within a tier, titles sort lexicographically by their
    original case.

    Args:
        partial: Text typed so far. Empty input yields no suggestions.
        titles: Candidate titles. Duplicates are kept, as in the store.
        limit: Maximum number of suggestions.
    """
    if not partial or limit <= 0:
        return []
    partial_lower = partial.lower()
    matches = [title for title in titles if partial_lower in title.lower()]
    matches.sort(key=lambda title: _rank_key(title, partial_lower))
    return matches[:limit]
