"""
Occurrence search: tag index, back-references and fuzzy title matching.
"""

from .index import IndexEngine, IndexAction, SortOrder, SearchOptions, SearchResult
from .fuzzy import levenshtein_distance, matches_title

__all__ = [
    "IndexEngine",
    "IndexAction",
    "SortOrder",
    "SearchOptions",
    "SearchResult",
    "levenshtein_distance",
    "matches_title",
]
