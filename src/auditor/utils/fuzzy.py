# src/auditor/utils/fuzzy.py
from difflib import SequenceMatcher
from typing import Iterable, List, Tuple


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insertions, deletions, substitutions) between two strings."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,               # deletion
                current[j - 1] + 1,            # insertion
                previous[j - 1] + (ca != cb),  # substitution
            ))
        previous = current
    return previous[-1]


def rank_candidates(missing: str, candidates: Iterable[str], max_distance: int) -> List[Tuple[str, int, float]]:
    """
    Ranks candidates by closeness to `missing`.

    Ordered by edit distance, then by SequenceMatcher ratio (higher first),
    then alphabetically. Candidates farther than `max_distance` are dropped.

    Returns:
        List[Tuple[str, int, float]]: (candidate, distance, ratio) triples.
    """
    ranked = []
    for candidate in set(candidates):
        if candidate == missing:
            continue
        distance = levenshtein(missing, candidate)
        if distance > max_distance:
            continue
        ratio = SequenceMatcher(None, missing.lower(), candidate.lower()).ratio()
        ranked.append((candidate, distance, round(ratio, 6)))
    ranked.sort(key=lambda item: (item[1], -item[2], item[0]))
    return ranked


def suggest(missing: str, candidates: Iterable[str], max_distance: int, limit: int = 3) -> List[str]:
    """The closest known candidates, best first."""
    return [c for c, _, _ in rank_candidates(missing, candidates, max_distance)[:limit]]
