"""Resolution of parsed links against the set of existing titles."""
from typing import Collection, List

from notelinks.models.schema import LinkOccurrence


def resolve_links(
    occurrences: List[LinkOccurrence], known_titles: Collection[str]
) -> List[LinkOccurrence]:
    """Mark occurrences whose target is a known title.

    Matching is exact: no case folding and no whitespace normalization.
    Occurrences are updated in place; unknown targets are left untouched
    rather than reset, so resolving against several indexes accumulates.

    Returns:
        The same list, for chaining.
    """
    titles = known_titles if isinstance(known_titles, (set, frozenset)) else set(known_titles)
    for occurrence in occurrences:
        if occurrence.target_title in titles:
            occurrence.exists = True
    return occurrences


def dangling_targets(occurrences: List[LinkOccurrence]) -> List[str]:
    """Unique targets of unresolved occurrences, in document order."""
    seen = set()
    result: List[str] = []
    for occurrence in occurrences:
        if not occurrence.exists and occurrence.target_title not in seen:
            seen.add(occurrence.target_title)
            result.append(occurrence.target_title)
    return result
