"""Heap-sort ranking of services by access frequency."""

from __future__ import annotations

from typing import Iterable, List, MutableSequence, NamedTuple, Optional, Protocol, Tuple, Union


class RankingEntry(NamedTuple):
    """A ``(key, count)`` pair produced for sorting; never persisted."""

    key: str
    count: int

    def render(self) -> str:
        return f"{self.key} ({self.count} accesses)"


class Ranker(Protocol):
    def rank(
        self,
        entries: Iterable[Union[RankingEntry, Tuple[str, int]]],
        top_n: Optional[int] = None,
    ) -> List[RankingEntry]:
        ...


def _sift_down(items: MutableSequence[RankingEntry], root: int, end: int) -> None:
    while True:
        largest = root
        left = 2 * root + 1
        right = left + 1
        if left < end and items[left].count > items[largest].count:
            largest = left
        if right < end and items[right].count > items[largest].count:
            largest = right
        if largest == root:
            return
        items[root], items[largest] = items[largest], items[root]
        root = largest


def heap_sort(items: MutableSequence[RankingEntry]) -> None:
    """Sort *items* in place, ascending by count.

    The order of entries with equal counts is whatever the heap comparisons
    leave behind; the sort is not stable.
    """

    length = len(items)
    for root in range(length // 2 - 1, -1, -1):
        _sift_down(items, root, length)
    for end in range(length - 1, 0, -1):
        items[0], items[end] = items[end], items[0]
        _sift_down(items, 0, end)


class HeapRanker:
    """Order ranking entries from most to least accessed."""

    def rank(
        self,
        entries: Iterable[Union[RankingEntry, Tuple[str, int]]],
        top_n: Optional[int] = None,
    ) -> List[RankingEntry]:
        ranked = [RankingEntry(key, int(count)) for key, count in entries]
        heap_sort(ranked)
        ranked.reverse()
        if top_n is not None:
            return ranked[: max(top_n, 0)]
        return ranked


__all__ = ["HeapRanker", "Ranker", "RankingEntry", "heap_sort"]
