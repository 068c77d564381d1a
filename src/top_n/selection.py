"""
Bounded Top-N selection.

Keeps the best N entries seen so far in a heap of size N whose root is the
WORST of the kept entries:

  - fewer than N kept       -> push the candidate
  - candidate beats root    -> heapreplace (evict root, insert candidate)
  - otherwise               -> discard the candidate

O(log N) per candidate and O(N) memory, whatever the input size. Sorting
happens only once, on the final N entries.

Two-phase use on a partitioned substrate:
  1. top_n_per_partition() gives each partition its LOCAL top-N
  2. merge_top_n() runs one more bounded selection over the union of the
     local lists (at most partitions * N candidates)
"""

import heapq
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from src.top_n.errors import InvalidConfiguration
from src.top_n.ordering import Ordering
from src.top_n.records import TopNEntry


class _Worst:
    """Heap item inverting the ordering: the worst entry sorts first."""

    __slots__ = ("ordering", "entry")

    def __init__(self, ordering: Ordering, entry: TopNEntry):
        self.ordering = ordering
        self.entry = entry

    def __lt__(self, other: "_Worst") -> bool:
        return self.ordering.compare(self.entry, other.entry) > 0


class BoundedTopSelector:
    """
    Holds at most N entries: the best ones offered so far.

    Example:
        selector = BoundedTopSelector(2, Ordering(Direction.TOP))
        selector.offer_all([("a", 12), ("b", 13), ("c", 1)])
        selector.result()  # [TopNEntry("b", 13), TopNEntry("a", 12)]
    """

    def __init__(self, n: int, ordering: Ordering | None = None):
        if isinstance(n, bool) or not isinstance(n, int) or n <= 0:
            raise InvalidConfiguration(f"N must be a positive integer, got {n!r}")
        self.n = n
        self.ordering = ordering if ordering is not None else Ordering()
        self._heap: list[_Worst] = []

    def __len__(self) -> int:
        return len(self._heap)

    def offer(self, candidate: Any) -> bool:
        """
        Consider one (key, total) candidate.

        Returns:
            True if the candidate was admitted into the kept set
        """
        entry = TopNEntry(*candidate)
        if len(self._heap) < self.n:
            heapq.heappush(self._heap, _Worst(self.ordering, entry))
            return True
        if self.ordering.is_better(entry, self._heap[0].entry):
            heapq.heapreplace(self._heap, _Worst(self.ordering, entry))
            return True
        return False

    def offer_all(self, candidates: Iterable[Any]) -> "BoundedTopSelector":
        for candidate in candidates:
            self.offer(candidate)
        return self

    def worst(self) -> TopNEntry | None:
        """The entry that the next candidate has to beat, if the set is full."""
        return self._heap[0].entry if self._heap else None

    def result(self) -> list[TopNEntry]:
        """Kept entries, best first. Does not consume the selector."""
        return self.ordering.sort(item.entry for item in self._heap)


def select_top_n(candidates: Iterable[Any], n: int, ordering: Ordering | None = None) -> list[TopNEntry]:
    """One-shot bounded selection over an iterable of (key, total) pairs."""
    return BoundedTopSelector(n, ordering).offer_all(candidates).result()


def top_n_per_partition(
    n: int, ordering: Ordering | None = None
) -> Callable[[Iterable[Any]], Iterator[TopNEntry]]:
    """Return a mapPartitions function that yields the partition's local top-N."""
    # fail here, on the driver, rather than inside a task
    BoundedTopSelector(n, ordering)

    def _find_top_n(partition: Iterable[Any]) -> Iterator[TopNEntry]:
        yield from select_top_n(partition, n, ordering)

    return _find_top_n


def merge_top_n(
    candidate_lists: Iterable[Iterable[Any]], n: int, ordering: Ordering | None = None
) -> list[TopNEntry]:
    """Final merge of per-partition top-N lists into the global top-N."""
    selector = BoundedTopSelector(n, ordering)
    for candidates in candidate_lists:
        selector.offer_all(candidates)
    return selector.result()
