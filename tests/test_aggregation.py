"""
Tests for in-mapper combining and the cross-partition reduce.
"""

import sys
from fractions import Fraction

import pytest

from src.top_n.aggregation import (
    add_totals,
    aggregate_partition,
    finish_entries,
    finish_total,
    reduce_partitions,
)
from src.top_n.errors import InvalidRecord, OverflowOrPrecisionLoss
from src.top_n.records import Aggregate, Record, TopNEntry, parse_lines


class TestAddTotals:
    """The shared combine function."""

    def test_ints(self) -> None:
        assert add_totals(12, 1) == 13

    def test_mixed_promotes_to_float(self) -> None:
        total = add_totals(1, 0.5)
        assert total == 1.5
        assert isinstance(total, float)

    def test_integers_never_wrap(self) -> None:
        """Integer totals promote to arbitrary precision."""
        big = 2**63 - 1
        assert add_totals(big, big) == 2 * big

    def test_float_overflow_rejected(self) -> None:
        with pytest.raises(OverflowOrPrecisionLoss) as excinfo:
            add_totals(sys.float_info.max, sys.float_info.max, key="hot")

        assert excinfo.value.key == "hot"
        assert "hot" in str(excinfo.value)

    def test_overflow_is_an_invalid_record(self) -> None:
        with pytest.raises(InvalidRecord):
            add_totals(-sys.float_info.max, -sys.float_info.max)

    def test_float_plus_huge_int_rejected(self) -> None:
        """An int beyond the float range cannot absorb a float."""
        with pytest.raises(OverflowOrPrecisionLoss) as excinfo:
            add_totals(10**400, 1.5, key="k")

        assert excinfo.value.key == "k"

    def test_message_without_key(self) -> None:
        """reduceByKey() calls the combine without a key."""
        with pytest.raises(OverflowOrPrecisionLoss, match=r"^total is not finite"):
            add_totals(sys.float_info.max, sys.float_info.max)

    def test_exact_decimals_are_associative(self) -> None:
        """Sums of parsed decimals do not depend on grouping."""
        big, one = Fraction("1e16"), Fraction("1.0")

        left = add_totals(add_totals(add_totals(big, one), -big), one)
        right = add_totals(add_totals(big, -big), add_totals(one, one))
        assert left == right == 2

    def test_commutative_and_associative(self) -> None:
        a, b, c = 5, 10, 7
        assert add_totals(a, b) == add_totals(b, a)
        assert add_totals(add_totals(a, b), c) == add_totals(a, add_totals(b, c))


class TestAggregatePartition:
    """Partition-local combining."""

    def test_sums_repeated_keys(self, example_lines: list[str]) -> None:
        aggregates = dict(aggregate_partition(parse_lines(example_lines)))

        assert aggregates == {"a": 12, "b": 13, "c": 1}

    def test_one_aggregate_per_key(self) -> None:
        records = [Record("k", 1)] * 1000 + [Record("j", 2)]
        aggregates = list(aggregate_partition(records))

        assert sorted(aggregates) == [Aggregate("j", 2), Aggregate("k", 1000)]

    def test_empty_partition(self) -> None:
        assert list(aggregate_partition([])) == []

    def test_accepts_single_pass_iterator(self) -> None:
        records = (Record(k, v) for k, v in [("a", 1), ("a", 2)])
        assert list(aggregate_partition(records)) == [Aggregate("a", 3)]

    def test_idempotent(self, random_lines: list[str]) -> None:
        """Re-running on the same partition yields the same aggregates."""
        records = list(parse_lines(random_lines))

        assert list(aggregate_partition(records)) == list(aggregate_partition(records))

    def test_matches_brute_force(self, random_lines: list[str], brute_force_totals) -> None:
        aggregates = dict(aggregate_partition(parse_lines(random_lines)))

        assert aggregates == brute_force_totals(random_lines)

    def test_fails_fast_on_overflow(self) -> None:
        records = [Record("x", sys.float_info.max), Record("x", sys.float_info.max)]

        with pytest.raises(OverflowOrPrecisionLoss, match="'x'"):
            list(aggregate_partition(records))


class TestReducePartitions:
    """Cross-partition merge."""

    def test_merges_keys_across_partitions(self) -> None:
        partitions = [
            [Aggregate("a", 5), Aggregate("b", 10)],
            [Aggregate("a", 7), Aggregate("c", 1)],
            [Aggregate("b", 3)],
        ]

        assert dict(reduce_partitions(partitions)) == {"a": 12, "b": 13, "c": 1}

    def test_partition_order_does_not_matter(self) -> None:
        partitions = [[Aggregate("a", 5)], [Aggregate("a", 7), Aggregate("b", 1)], []]

        forward = dict(reduce_partitions(partitions))
        backward = dict(reduce_partitions(reversed(partitions)))
        assert forward == backward == {"a": 12, "b": 1}

    def test_no_partitions(self) -> None:
        assert reduce_partitions([]) == []

    @pytest.mark.parametrize("partition_count", [1, 2, 3, 7, 50])
    def test_any_partitioning_gives_same_totals(
        self, partition_count: int, random_lines: list[str], brute_force_totals
    ) -> None:
        records = list(parse_lines(random_lines))
        chunks = [records[i::partition_count] for i in range(partition_count)]

        reduced = reduce_partitions(aggregate_partition(chunk) for chunk in chunks)

        assert dict(reduced) == brute_force_totals(random_lines)
        assert len(reduced) == len({r.key for r in records})

    def test_overflow_across_partitions(self) -> None:
        partitions = [[Aggregate("x", sys.float_info.max)], [Aggregate("x", sys.float_info.max)]]

        with pytest.raises(OverflowOrPrecisionLoss):
            reduce_partitions(partitions)


class TestFinishTotals:
    """Conversion of exact totals for output."""

    def test_int_stays_int(self) -> None:
        total = finish_total(10**30)
        assert total == 10**30
        assert isinstance(total, int)

    def test_fraction_becomes_float(self) -> None:
        total = finish_total(Fraction(5, 2))
        assert total == 2.5
        assert isinstance(total, float)

    def test_whole_fraction_stays_float(self) -> None:
        """A total with decimal inputs is a float even when it is whole."""
        assert repr(finish_total(Fraction(2))) == "2.0"

    def test_fraction_beyond_float_range(self) -> None:
        with pytest.raises(OverflowOrPrecisionLoss, match="'k'"):
            finish_total(Fraction(10**400) + Fraction(1, 2), key="k")

    def test_finish_entries_keeps_order(self) -> None:
        entries = [TopNEntry("b", 13), TopNEntry("a", Fraction(25, 2))]

        assert finish_entries(entries) == [TopNEntry("b", 13), TopNEntry("a", 12.5)]
