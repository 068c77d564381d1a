"""
Top-N job: the N keys with the largest (or smallest) summed value.

Input record format:
    <string-key><,><numeric-value>      e.g. url,789

Usage:
    python -m src.top_n.top_n_job [input-path] [topN] [options]

Without arguments the bundled src/top_n/data/tweets_count.txt and N=10 are
used. Each result line is printed as "<total>--<key>", best first.

Exit status: 0 on success, 1 if the input or a partition failed,
2 on a configuration error.
"""

import argparse
import logging
import sys
from pathlib import Path

from src.common.data_loader import get_data_path, read_lines
from src.common.spark_session import DEFAULT_MASTER, create_spark_session
from src.top_n.config import DEFAULT_N, DEFAULT_PARTITION_COUNT, Direction, TopNConfig
from src.top_n.emitter import emit
from src.top_n.errors import InvalidConfiguration, InvalidRecord, PartitionFailure
from src.top_n.pipeline import run_local_pipeline, run_spark_pipeline
from src.top_n.records import TopNEntry

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BAD_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="top_n_job",
        description="Find the N keys with the largest (or smallest) aggregated value.",
    )
    parser.add_argument("input_path", nargs="?", help="file of 'key,value' lines")
    parser.add_argument("n", nargs="?", help=f"number of results (default: {DEFAULT_N})")
    parser.add_argument(
        "--partitions",
        type=int,
        default=DEFAULT_PARTITION_COUNT,
        help=f"partition count of the combine stage (default: {DEFAULT_PARTITION_COUNT})",
    )
    parser.add_argument("--bottom", action="store_true", help="keep the N smallest totals instead")
    parser.add_argument(
        "--tie-break",
        default="asc",
        help="key order for equal totals: asc or desc (default: asc)",
    )
    parser.add_argument("--strict", action="store_true", help="fail on the first malformed line")
    parser.add_argument("--skip-header", action="store_true", help="ignore the first input line")
    parser.add_argument("--take-ordered", action="store_true", help="select with Spark's takeOrdered()")
    parser.add_argument("--local", action="store_true", help="run without Spark")
    parser.add_argument("--master", default=DEFAULT_MASTER, help=f"Spark master (default: {DEFAULT_MASTER})")
    parser.add_argument("--debug-dir", help="write intermediate stages below this directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="log at DEBUG level")
    return parser


def parse_n(value: str | None) -> int:
    if value is None:
        return DEFAULT_N
    try:
        return int(value)
    except ValueError:
        raise InvalidConfiguration(f"N must be a positive integer, got {value!r}") from None


def config_from_args(args: argparse.Namespace) -> TopNConfig:
    return TopNConfig(
        n=parse_n(args.n),
        partition_count=args.partitions,
        direction=Direction.BOTTOM if args.bottom else Direction.TOP,
        tie_break=args.tie_break,
        strict=args.strict,
        skip_header=args.skip_header,
        selection="take_ordered" if args.take_ordered else "heap",
        debug_dir=args.debug_dir,
    )


def run(args: argparse.Namespace, config: TopNConfig, input_path: str) -> list[TopNEntry]:
    # the JVM may run in another directory, so pin relative paths to ours
    input_path = str(Path(input_path).absolute())
    if args.local:
        return run_local_pipeline(read_lines(input_path), config)

    spark = create_spark_session(__file__, master=args.master, shuffle_partitions=config.partition_count)
    try:
        return run_spark_pipeline(spark.sparkContext, input_path, config)
    finally:
        spark.stop()


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the job and print the Top-N."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    input_path = args.input_path
    if input_path is None:
        input_path = str(get_data_path())
        print("Usage: top_n_job <input-path> <topN>", file=sys.stderr)
        print(f"Using the default options located in: {input_path}", file=sys.stderr)

    try:
        config = config_from_args(args)
    except InvalidConfiguration as e:
        logger.error("Invalid configuration: %s", e)
        return EXIT_BAD_CONFIG

    logger.info(
        "Top-%d (%s) of %s over %d partition(s)",
        config.n, config.direction.name, input_path, config.partition_count,
    )

    try:
        result = run(args, config, input_path)
    except InvalidRecord as e:
        logger.error("Invalid record: %s", e)
        return EXIT_FAILED
    except PartitionFailure as e:
        logger.error("Aggregation failed, no result produced: %s", e)
        return EXIT_FAILED
    except OSError as e:
        logger.error("Cannot read input: %s", e)
        return EXIT_FAILED

    emit(result)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
