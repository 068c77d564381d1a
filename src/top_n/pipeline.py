"""
Top-N by aggregated key: the end-to-end pipeline.

Top-N Structure (keys repeat, so values are summed before ranking):

  1. map(input)                      => (K, V)
  2. combine per partition           => (K, partial sum)    aggregate_partition()
  3. reduce across partitions        => (K, V1 + ... + Vn)  reduce_partitions() / reduceByKey()
     now all K's are unique
  4. local top-N per partition       => at most N per partition
  5. merge the local lists           => global top-N        merge_top_n()

Two executors drive the same functions:

  run_spark_pipeline()  Spark runs the partition tasks, retries them and
                        shuffles between steps 2 and 3.
  run_local_pipeline()  a thread pool runs one task per partition; collecting
                        every future is the barrier before each merge.

In both, a failed partition fails the whole run: no partial Top-N is returned.
Totals stay exact (int or Fraction) until the final N entries are converted
for output by finish_entries().
"""

import logging
import zlib
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from itertools import islice
from pathlib import Path
from typing import Any, TypeVar

from py4j.protocol import Py4JJavaError
from pyspark import SparkContext
from pyspark.errors import PySparkException
from pyspark.rdd import RDD

from src.top_n.aggregation import add_totals, aggregate_partition, finish_entries, reduce_partitions
from src.top_n.config import TopNConfig
from src.top_n.errors import InvalidConfiguration, InvalidRecord, PartitionFailure
from src.top_n.ordering import Ordering
from src.top_n.records import Aggregate, TopNEntry, parse_numbered, parse_partition
from src.top_n.selection import merge_top_n, select_top_n, top_n_per_partition

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

# Errors that a retry cannot fix: the same input fails the same way
DETERMINISTIC_ERRORS = (InvalidRecord, InvalidConfiguration)

NumberedLine = tuple[int, str]


# ---------------------------------------------------------------------------
# Partitioning helpers
# ---------------------------------------------------------------------------


def deal_round_robin(items: Iterable[T], partition_count: int) -> list[list[T]]:
    """Deal items into partition_count lists: item i goes to partition i % count."""
    partitions: list[list[T]] = [[] for _ in range(partition_count)]
    for index, item in enumerate(items):
        partitions[index % partition_count].append(item)
    return partitions


def key_partition(key: str, partition_count: int) -> int:
    """Stable (process-independent) hash partitioning of a key."""
    return zlib.crc32(key.encode("utf-8")) % partition_count


def shard_by_key(aggregates: Iterable[Aggregate], partition_count: int) -> list[list[Aggregate]]:
    """Group aggregates into partition_count shards by key hash, like a shuffle."""
    shards: list[list[Aggregate]] = [[] for _ in range(partition_count)]
    for aggregate in aggregates:
        shards[key_partition(aggregate.key, partition_count)].append(aggregate)
    return shards


def write_stage(path: Path, rows: Iterable[Any]) -> None:
    """Write one row per line (str(row)), creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        for row in rows:
            f.write(f"{row}\n")


# ---------------------------------------------------------------------------
# Local executor
# ---------------------------------------------------------------------------


def run_with_retries(task: Callable[[], R], partition: int, max_retries: int, stage: str) -> R:
    """
    Run one partition task, retrying it up to max_retries times.

    Tasks must be pure functions of their partition, so a retry recomputes
    exactly the same result.

    Raises:
        InvalidRecord, InvalidConfiguration: Immediately, never retried
        PartitionFailure: Once all attempts have failed
    """
    attempts = max_retries + 1
    for attempt in range(1, attempts):
        try:
            return task()
        except DETERMINISTIC_ERRORS:
            raise
        except Exception as e:
            logger.warning(
                "%s task for partition %d failed (attempt %d/%d): %s",
                stage, partition, attempt, attempts, e,
            )

    try:
        return task()
    except DETERMINISTIC_ERRORS:
        raise
    except Exception as e:
        raise PartitionFailure(
            f"{stage} task failed after {attempts} attempt(s): {e}", partition=partition
        ) from e


def run_partition_tasks(
    task: Callable[[int, T], R],
    partitions: list[T],
    max_retries: int,
    stage: str,
) -> list[R]:
    """
    Run task(index, partition) for every partition in parallel.

    Returns only after EVERY task has finished (the barrier); if any task
    failed, its error is raised and no result is returned.
    """
    with ThreadPoolExecutor(max_workers=max(1, len(partitions)), thread_name_prefix=stage) as pool:
        futures = [
            pool.submit(run_with_retries, lambda i=i, p=p: task(i, p), i, max_retries, stage)
            for i, p in enumerate(partitions)
        ]
        # leaving the with-block waits for every future before results are read
    return [future.result() for future in futures]


def combine_partition(
    config: TopNConfig,
) -> Callable[[int, list[NumberedLine]], list[Aggregate]]:
    """Return the parse + in-mapper-combine task for one partition of numbered lines."""

    def _combine(index: int, numbered_lines: list[NumberedLine]) -> list[Aggregate]:
        records = parse_numbered(numbered_lines, config.strict)
        if config.debug_dir:
            records = list(records)
            write_stage(Path(config.debug_dir) / "2" / f"part-{index:05d}", (tuple(r) for r in records))
        return list(aggregate_partition(records))

    return _combine


def run_local_pipeline(
    lines: Iterable[str],
    config: TopNConfig,
    combine: Callable[[int, list[NumberedLine]], list[Aggregate]] | None = None,
) -> list[TopNEntry]:
    """
    Compute the Top-N without Spark.

    Args:
        lines: Raw "key,value" lines
        config: Run configuration (validated on construction)
        combine: Partition task override; defaults to combine_partition(config)

    Returns:
        The Top-N entries, best first
    """
    ordering = Ordering.from_config(config)
    combine = combine if combine is not None else combine_partition(config)

    numbered = enumerate(lines, start=1)
    if config.skip_header:
        numbered = islice(numbered, 1, None)
    partitions = deal_round_robin(numbered, config.partition_count)
    logger.info(
        "Dealt %d line(s) into %d partition(s)",
        sum(len(p) for p in partitions), config.partition_count,
    )
    if config.debug_dir:
        for index, partition in enumerate(partitions):
            write_stage(Path(config.debug_dir) / "1" / f"part-{index:05d}", (line for _, line in partition))

    partition_aggregates = run_partition_tasks(combine, partitions, config.max_retries, "combine")
    unique_keys = reduce_partitions(partition_aggregates)
    if config.debug_dir:
        write_stage(Path(config.debug_dir) / "3" / "part-00000", (tuple(a) for a in unique_keys))

    if config.selection == "take_ordered":
        # whole-set selection, the local stand-in for Spark's takeOrdered()
        return finish_entries(select_top_n(unique_keys, config.n, ordering))

    shards = shard_by_key(unique_keys, config.partition_count)
    local_tops = run_partition_tasks(
        lambda _, shard: select_top_n(shard, config.n, ordering),
        shards,
        config.max_retries,
        "select",
    )
    logger.info("Merging %d local top-%d candidate(s)", sum(len(t) for t in local_tops), config.n)
    return finish_entries(merge_top_n(local_tops, config.n, ordering))


# ---------------------------------------------------------------------------
# Spark executor
# ---------------------------------------------------------------------------


def _as_aggregate(pair: tuple[str, Any]) -> Aggregate:
    return Aggregate(*pair)


def with_partition_count(rdd: RDD, partition_count: int) -> RDD:
    """coalesce() down (no shuffle) or repartition() up to partition_count."""
    current = rdd.getNumPartitions()
    if current == partition_count:
        return rdd
    if current > partition_count:
        return rdd.coalesce(partition_count)
    return rdd.repartition(partition_count)


def drop_header(rdd: RDD) -> RDD:
    """Drop the first line of partition 0 without running a separate job."""
    return rdd.mapPartitionsWithIndex(
        lambda index, it: islice(it, 1, None) if index == 0 else it,
        preservesPartitioning=True,
    )


def aggregate_rdd(lines: RDD, config: TopNConfig) -> RDD:
    """
    Parse, combine per partition and reduce by key.

    Returns:
        RDD of unique (key, total) pairs in config.partition_count partitions
    """
    debug_dir = Path(config.debug_dir) if config.debug_dir else None
    if debug_dir:
        lines.saveAsTextFile(str(debug_dir / "1"))

    records = lines.mapPartitions(parse_partition(config.strict))
    if debug_dir:
        records.map(tuple).saveAsTextFile(str(debug_dir / "2"))

    unique_keys = records.mapPartitions(aggregate_partition).reduceByKey(
        add_totals, numPartitions=config.partition_count
    )
    if debug_dir:
        unique_keys.saveAsTextFile(str(debug_dir / "3"))
    return unique_keys


def take_ordered_top_n(rdd: RDD, n: int, ordering: Ordering) -> list[TopNEntry]:
    """Top-N through Spark's built-in takeOrdered(), with the same ordering."""
    return [TopNEntry(*entry) for entry in rdd.map(_as_aggregate).takeOrdered(n, key=ordering.sort_key)]


def find_top_n(unique_keys: RDD, n: int, ordering: Ordering) -> list[TopNEntry]:
    """
    Two-phase bounded selection over an RDD of unique (key, total) pairs.

    Each partition emits at most N pairs, so the driver merges at most
    partitions * N candidates.
    """
    local_tops = unique_keys.mapPartitions(top_n_per_partition(n, ordering)).glom().collect()
    logger.info("Merging %d local top-%d candidate(s)", sum(len(t) for t in local_tops), n)
    return merge_top_n(local_tops, n, ordering)


def run_spark_pipeline(
    sc: SparkContext,
    source: str | Path | Iterable[str],
    config: TopNConfig,
) -> list[TopNEntry]:
    """
    Compute the Top-N on Spark.

    Args:
        sc: Active SparkContext
        source: Input path (read with textFile) or an iterable of lines
        config: Run configuration

    Returns:
        The Top-N entries, best first

    Raises:
        PartitionFailure: If the Spark job fails after Spark's own retries
    """
    ordering = Ordering.from_config(config)

    if isinstance(source, (str, Path)):
        lines = sc.textFile(str(source))
    else:
        lines = sc.parallelize(list(source), config.partition_count)
    if config.skip_header:
        lines = drop_header(lines)
    lines = with_partition_count(lines, config.partition_count)

    try:
        unique_keys = aggregate_rdd(lines, config)
        if config.selection == "take_ordered":
            return finish_entries(take_ordered_top_n(unique_keys, config.n, ordering))
        return finish_entries(find_top_n(unique_keys, config.n, ordering))
    except (Py4JJavaError, PySparkException) as e:
        raise PartitionFailure(f"Spark job failed: {e}") from e
