"""
Pytest configuration and shared fixtures for the Top-N tests.
"""

import random
from fractions import Fraction

import pytest
from pyspark.sql import SparkSession

# The worked example: aggregates are {a: 12, b: 13, c: 1}
EXAMPLE_LINES = ["a,5", "b,10", "a,7", "c,1", "b,3"]


@pytest.fixture(scope="session")
def spark() -> SparkSession:
    """
    Create a SparkSession for testing.

    Uses session scope to reuse the same Spark context across all tests,
    which significantly speeds up test execution.
    """
    spark = (
        SparkSession.builder
        .appName("pytest-top-n")
        .master("local[2]")  # Use 2 cores for testing
        .config("spark.sql.shuffle.partitions", "2")  # Reduce partitions for faster tests
        .config("spark.ui.enabled", "false")  # Disable Spark UI for tests
        .config("spark.driver.memory", "1g")
        .getOrCreate()
    )

    # Set log level to reduce noise during tests
    spark.sparkContext.setLogLevel("WARN")

    yield spark

    spark.stop()


@pytest.fixture(scope="session")
def sc(spark: SparkSession):
    """
    Get SparkContext from the SparkSession fixture.

    Useful for RDD-based tests.
    """
    return spark.sparkContext


@pytest.fixture
def example_lines() -> list[str]:
    return list(EXAMPLE_LINES)


def make_lines(seed: int, num_lines: int = 500, num_keys: int = 60, floats: bool = False) -> list[str]:
    """Random "key,value" lines with heavily repeated keys."""
    rng = random.Random(seed)
    lines = []
    for _ in range(num_lines):
        key = f"key{rng.randrange(num_keys)}"
        value = round(rng.uniform(-50, 500), 2) if floats else rng.randint(-50, 500)
        lines.append(f"{key},{value}")
    return lines


def expected_totals(lines: list[str]) -> dict[str, int | Fraction]:
    """Brute-force exact per-key sums, for comparison with the pipeline."""
    totals: dict[str, int | Fraction] = {}
    for line in lines:
        key, value = line.rsplit(",", 1)
        number = Fraction(value) if "." in value else int(value)
        totals[key] = totals.get(key, 0) + number
    return totals


@pytest.fixture
def random_lines() -> list[str]:
    return make_lines(seed=598)


@pytest.fixture
def lines_factory():
    """make_lines(seed, num_lines=500, num_keys=60, floats=False)."""
    return make_lines


@pytest.fixture
def brute_force_totals():
    """expected_totals(lines) -> {key: exact sum of values}."""
    return expected_totals
