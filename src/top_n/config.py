"""
Configuration for the Top-N job.

The job recognises four options (result size, partition count, direction
and tie-break order) plus a few knobs for the surrounding glue. A
TopNConfig validates itself on construction, so an invalid configuration
never reaches the data.
"""

from dataclasses import dataclass
from enum import Enum

from src.top_n.errors import InvalidConfiguration

# Defaults of the original Top-10 job: N=10, input coalesced to 9 partitions
DEFAULT_N = 10
DEFAULT_PARTITION_COUNT = 9
DEFAULT_MAX_RETRIES = 2

SELECTION_STRATEGIES = ("heap", "take_ordered")


class Direction(Enum):
    """Comparator polarity: TOP keeps the largest totals, BOTTOM the smallest."""

    TOP = "top"
    BOTTOM = "bottom"

    @classmethod
    def parse(cls, value: "Direction | str") -> "Direction":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidConfiguration(
                f"unknown direction {value!r} (expected one of: top, bottom)"
            ) from None


class TieBreak(Enum):
    """Secondary ordering on key when two totals are equal."""

    ASCENDING = "asc"
    DESCENDING = "desc"

    @classmethod
    def parse(cls, value: "TieBreak | str") -> "TieBreak":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().lower()
        aliases = {"ascending": "asc", "descending": "desc"}
        try:
            return cls(aliases.get(normalized, normalized))
        except ValueError:
            raise InvalidConfiguration(
                f"unknown tie-break {value!r} (expected one of: asc, desc)"
            ) from None


@dataclass(frozen=True)
class TopNConfig:
    """
    Settings for one Top-N run.

    Args:
        n: Result size, must be positive
        partition_count: Degree of parallelism of the partition stage
        direction: Direction.TOP or Direction.BOTTOM (strings accepted)
        tie_break: Key order used when totals are equal (strings accepted)
        strict: Propagate InvalidRecord instead of dropping bad lines
        max_retries: Retries per partition task in the local executor
        skip_header: Drop the first input line
        selection: "heap" (bounded selector) or "take_ordered" (Spark built-in)
        debug_dir: If set, intermediate stages are written below it
    """

    n: int = DEFAULT_N
    partition_count: int = DEFAULT_PARTITION_COUNT
    direction: Direction = Direction.TOP
    tie_break: TieBreak = TieBreak.ASCENDING
    strict: bool = False
    max_retries: int = DEFAULT_MAX_RETRIES
    skip_header: bool = False
    selection: str = "heap"
    debug_dir: str | None = None

    def __post_init__(self) -> None:
        # frozen dataclass: normalise enum fields through object.__setattr__
        object.__setattr__(self, "direction", Direction.parse(self.direction))
        object.__setattr__(self, "tie_break", TieBreak.parse(self.tie_break))
        self.validate()

    def validate(self) -> None:
        """Raise InvalidConfiguration if any setting is out of range."""
        if isinstance(self.n, bool) or not isinstance(self.n, int) or self.n <= 0:
            raise InvalidConfiguration(f"N must be a positive integer, got {self.n!r}")
        if (
            isinstance(self.partition_count, bool)
            or not isinstance(self.partition_count, int)
            or self.partition_count <= 0
        ):
            raise InvalidConfiguration(
                f"partition count must be a positive integer, got {self.partition_count!r}"
            )
        if not isinstance(self.max_retries, int) or self.max_retries < 0:
            raise InvalidConfiguration(
                f"max retries must be a non-negative integer, got {self.max_retries!r}"
            )
        if self.selection not in SELECTION_STRATEGIES:
            raise InvalidConfiguration(
                f"unknown selection strategy {self.selection!r} "
                f"(expected one of: {', '.join(SELECTION_STRATEGIES)})"
            )
