"""
Comparator policy: a total order over (total, key) pairs.

The direction decides which totals are "better" (larger for TOP, smaller
for BOTTOM); equal totals fall back to the key so that results do not
depend on arrival order or partition layout.
"""

from collections.abc import Iterable
from typing import Any

from src.top_n.config import Direction, TieBreak, TopNConfig
from src.top_n.records import Number


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


class RankKey:
    """Sort key wrapper: RankKey(x) < RankKey(y) iff x ranks before y."""

    __slots__ = ("ordering", "entry")

    def __init__(self, ordering: "Ordering", entry: Any):
        self.ordering = ordering
        self.entry = entry

    def __lt__(self, other: "RankKey") -> bool:
        return self.ordering.compare(self.entry, other.entry) < 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RankKey):
            return NotImplemented
        return self.ordering.compare(self.entry, other.entry) == 0


class Ordering:
    """
    Injected ordering used by every selection step.

    compare(a, b) < 0 means a ranks before (is better than) b.
    Works on anything with .key and .total attributes.
    """

    def __init__(
        self,
        direction: Direction | str = Direction.TOP,
        tie_break: TieBreak | str = TieBreak.ASCENDING,
    ):
        self.direction = Direction.parse(direction)
        self.tie_break = TieBreak.parse(tie_break)

    @classmethod
    def from_config(cls, config: TopNConfig) -> "Ordering":
        return cls(config.direction, config.tie_break)

    def compare_totals(self, a: Number, b: Number) -> int:
        if self.direction is Direction.TOP:
            return _cmp(b, a)
        return _cmp(a, b)

    def compare(self, a: Any, b: Any) -> int:
        by_total = self.compare_totals(a.total, b.total)
        if by_total:
            return by_total
        if self.tie_break is TieBreak.ASCENDING:
            return _cmp(a.key, b.key)
        return _cmp(b.key, a.key)

    def is_better(self, a: Any, b: Any) -> bool:
        """True if a strictly outranks b."""
        return self.compare(a, b) < 0

    def sort_key(self, entry: Any) -> RankKey:
        """Key function for sorted(), heapq and RDD.takeOrdered()."""
        return RankKey(self, entry)

    def sort(self, entries: Iterable[Any]) -> list[Any]:
        """Return entries best-first."""
        return sorted(entries, key=self.sort_key)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Ordering):
            return NotImplemented
        return (self.direction, self.tie_break) == (other.direction, other.tie_break)

    def __hash__(self) -> int:
        return hash((self.direction, self.tie_break))

    def __repr__(self) -> str:
        return f"Ordering({self.direction.name}, tie_break={self.tie_break.name})"
