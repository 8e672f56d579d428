"""
Top-K selection over the final word tally.

Words are ranked by:

1. count, descending
2. word length, descending
3. the word itself, ascending

so the order is total for any set of distinct words.
"""

import heapq
from typing import Dict, List, Mapping, Tuple


def _rank_key(entry: Tuple[str, int]) -> Tuple[int, int, str]:
    word, count = entry
    return -count, -len(word), word


def top_words(counts: Mapping[str, int], top_k: int) -> List[Tuple[str, int]]:
    """
    Return the ``top_k`` highest ranked ``(word, count)`` pairs.

    Args:
        counts: Word to count mapping
        top_k: Number of pairs to keep; ``<= 0`` yields an empty list

    Returns:
        Ordered list of pairs, best first
    """
    if top_k <= 0 or not counts:
        return []

    if top_k >= len(counts):
        return sorted(counts.items(), key=_rank_key)

    return heapq.nsmallest(top_k, counts.items(), key=_rank_key)


def sort_word_counts(counts: Mapping[str, int], top_k: int) -> Dict[str, int]:
    """Ordered-dict form of :func:`top_words`."""
    return dict(top_words(counts, top_k))
