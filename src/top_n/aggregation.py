"""
In-mapper combining and the cross-partition reduce.

  1. aggregate_partition() sums repeated keys inside ONE partition with a
     local dict (the in-mapper combiner): one Aggregate per key per partition.
  2. reduce_partitions() merges the per-partition outputs into exactly one
     Aggregate per key across the whole input.

Both steps use add_totals(), which is commutative and associative, so the
result does not depend on how the input was partitioned or in which order
partitions are merged. The same function is what Spark's reduceByKey()
receives.

Numeric policy: totals are exact. Integers are unbounded in Python and never
wrap; decimal literals are parsed to Fractions, so a sum of them is the same
in any grouping. finish_entries() turns Fraction totals into floats once the
Top-N is known, and rejects (OverflowOrPrecisionLoss) a total beyond the
float range. Plain float inputs that overflow are rejected the same way.
"""

import logging
import math
from collections.abc import Iterable, Iterator
from fractions import Fraction

from src.top_n.errors import OverflowOrPrecisionLoss
from src.top_n.records import Aggregate, Number, Record, TopNEntry

logger = logging.getLogger(__name__)


def add_totals(a: Number, b: Number, key: str | None = None) -> Number:
    """
    Combine two partial totals.

    Raises:
        OverflowOrPrecisionLoss: If the sum is not a finite number
    """
    try:
        total = a + b
    except OverflowError:
        # float + int beyond the float range
        raise OverflowOrPrecisionLoss(key, math.inf) from None
    if isinstance(total, float) and not math.isfinite(total):
        raise OverflowOrPrecisionLoss(key, total)
    return total


def finish_total(total: Number, key: str | None = None) -> int | float:
    """
    Output form of an exact total: ints stay ints, Fractions become floats.

    Raises:
        OverflowOrPrecisionLoss: If the total does not fit in a float
    """
    if not isinstance(total, Fraction):
        return total
    try:
        return float(total)
    except OverflowError:
        raise OverflowOrPrecisionLoss(key, math.inf) from None


def finish_entries(entries: Iterable[TopNEntry]) -> list[TopNEntry]:
    """Convert the totals of a final, already ranked Top-N list."""
    return [TopNEntry(entry.key, finish_total(entry.total, entry.key)) for entry in entries]


def aggregate_partition(records: Iterable[Record]) -> Iterator[Aggregate]:
    """
    Sum values per key across one partition.

    Single pass over a lazy iterable; O(1) amortised work per record.
    Pure function of its input, so re-running it on the same partition
    yields the same aggregates.

    Args:
        records: (key, value) records of this partition, in any order

    Yields:
        One Aggregate per distinct key seen in this partition
    """
    totals: dict[str, Number] = {}
    for key, value in records:
        if key in totals:
            totals[key] = add_totals(totals[key], value, key)
        else:
            totals[key] = add_totals(0, value, key)

    for key, total in totals.items():
        yield Aggregate(key, total)


def reduce_partitions(
    partition_aggregates: Iterable[Iterable[Aggregate]],
) -> list[Aggregate]:
    """
    Merge per-partition aggregates into one Aggregate per key.

    Args:
        partition_aggregates: One sequence of Aggregates per partition;
            keys are unique within a sequence but repeat across them

    Returns:
        One Aggregate per distinct key, total summed over all partitions
    """
    totals: dict[str, Number] = {}
    partitions = 0
    for aggregates in partition_aggregates:
        partitions += 1
        for key, total in aggregates:
            if key in totals:
                totals[key] = add_totals(totals[key], total, key)
            else:
                totals[key] = total

    logger.info("Reduced %d partition(s) into %d distinct key(s)", partitions, len(totals))
    return [Aggregate(key, total) for key, total in totals.items()]
