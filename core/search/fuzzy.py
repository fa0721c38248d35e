"""
Title matching for occurrence search.

Case-insensitive substring, word-prefix and edit-distance matching. Edit
distance is the classic dynamic-programming Levenshtein distance, computed per
title word.
"""

from typing import List

MAX_EDIT_DISTANCE = 2


def levenshtein_distance(a: str, b: str) -> int:
    """Minimum number of single-character edits turning ``a`` into ``b``"""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(
                previous[j] + 1,         # deletion
                current[j - 1] + 1,      # insertion
                previous[j - 1] + cost   # substitution
            ))
        previous = current
    return previous[-1]


def title_words(title: str) -> List[str]:
    return title.lower().split()


def matches_title(title: str, query: str, max_distance: int = MAX_EDIT_DISTANCE) -> bool:
    """
    Check whether a title matches a free-text query.

    A title matches when it contains the query, or when any of its words
    starts with the query or is within ``max_distance`` edits of it.

    Args:
        title: Record title
        query: Free-text query
        max_distance: Largest edit distance still counted as a match

    Returns:
        True if the title matches (an empty query matches everything)
    """
    needle = query.strip().lower()
    if not needle:
        return True

    haystack = title.lower()
    if needle in haystack:
        return True

    for word in title_words(title):
        if word.startswith(needle):
            return True
        # Length difference is a lower bound on the distance
        if abs(len(word) - len(needle)) > max_distance:
            continue
        if levenshtein_distance(word, needle) <= max_distance:
            return True
    return False
