"""
Error taxonomy for the Top-N job.

    TopNError
    ├── InvalidRecord             unparsable "key,value" line or value
    │   └── OverflowOrPrecisionLoss   a running total stopped being finite
    ├── InvalidConfiguration      N <= 0, unknown direction, ...
    └── PartitionFailure          a partition task never completed
"""


class TopNError(Exception):
    """Base class for every error raised by the Top-N pipeline."""


class InvalidRecord(TopNError, ValueError):
    """A line (or value) that cannot become a (key, value) record."""

    def __init__(self, message: str, line: str | None = None, line_number: int | None = None):
        self.line = line
        self.line_number = line_number
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)


class OverflowOrPrecisionLoss(InvalidRecord):
    """A key's total is no longer a finite number."""

    def __init__(self, key: str | None, total: float):
        self.key = key
        self.total = total
        subject = "total" if key is None else f"total for key {key!r}"
        super().__init__(f"{subject} is not finite ({total!r})")


class InvalidConfiguration(TopNError, ValueError):
    """Rejected configuration; raised before any data is processed."""


class PartitionFailure(TopNError):
    """A partition task (or the whole Spark job) did not complete."""

    def __init__(self, message: str, partition: int | None = None):
        self.partition = partition
        if partition is not None:
            message = f"partition {partition}: {message}"
        super().__init__(message)
