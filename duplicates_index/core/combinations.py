"""Order-preserving k-combinations."""

from __future__ import annotations

from typing import List, Sequence, TypeVar

T = TypeVar("T")


def combinations(items: Sequence[T], k: int) -> List[List[T]]:
    """Return every size-``k`` subsequence of ``items`` in lexicographic index order.

    Uses index-array advancement: the rightmost index that can still move is
    incremented and every index to its right is reset to the smallest
    position after it. ``len(result) == C(len(items), k)``.

    Args:
        items: Ordered input; relative order is kept inside each combination
        k: Combination size, at least 1

    Returns:
        List of combinations (empty when ``k > len(items)``)
    """
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")
    n = len(items)
    if k > n:
        return []

    indices = list(range(k))
    result: List[List[T]] = [[items[i] for i in indices]]

    while True:
        # rightmost index that has not reached its final position n - k + pos
        pos = k - 1
        while pos >= 0 and indices[pos] == n - k + pos:
            pos -= 1
        if pos < 0:
            return result
        indices[pos] += 1
        for follow in range(pos + 1, k):
            indices[follow] = indices[follow - 1] + 1
        result.append([items[i] for i in indices])
