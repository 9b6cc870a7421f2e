"""kura.prefix - Ambiguous prefix resolution over candidate names"""

from typing import Iterable, List

from .models import MatchKind, MatchResult


def prefix_matches(candidates: Iterable[str], query: str) -> List[str]:
    """Return every distinct candidate starting with query, in candidate order.

    An empty query matches everything, which is how a full listing is produced.
    """
    seen = set()
    matches = []
    for name in candidates:
        if name in seen:
            continue
        seen.add(name)
        if name.startswith(query):
            matches.append(name)
    return matches


def match(candidates: Iterable[str], query: str) -> MatchResult:
    """Resolve query to a single candidate, or report none/ambiguous."""
    matches = prefix_matches(candidates, query)
    if not matches:
        return MatchResult(MatchKind.NONE)
    if len(matches) > 1:
        return MatchResult(MatchKind.AMBIGUOUS, matches)
    return MatchResult(MatchKind.UNIQUE, matches)


def common_prefix_length(matches: List[str]) -> int:
    """Length of the leading substring shared by all matches."""
    if not matches:
        return 0
    shortest = min(len(m) for m in matches)
    first = matches[0]
    for i in range(shortest):
        if any(m[i] != first[i] for m in matches[1:]):
            return i
    return shortest
