"""
Common data loading utilities.

Locates the bundled sample data and reads "key,value" input files as
plain lines for the Spark-free executor.
"""

from collections.abc import Iterator
from pathlib import Path

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent.parent

DEFAULT_DATA_FILE = "tweets_count.txt"


def get_data_path(filename: str = DEFAULT_DATA_FILE, package: str = "top_n") -> Path:
    """
    Get the full path to a data file within a package's data directory.

    Args:
        filename: Data file name (e.g., "tweets_count.txt")
        package: Package directory under src/ (default: "top_n")

    Returns:
        Full path to the data file
    """
    return PROJECT_ROOT / "src" / package / "data" / filename


def read_lines(path: str | Path, skip_header: bool = False) -> Iterator[str]:
    """
    Lazily read a text file line by line.

    Args:
        path: Path to the file, relative paths resolve against the working directory
        skip_header: Whether to skip the first line (default: False)

    Yields:
        Lines without their trailing newline
    """
    with Path(path).open("r", encoding="utf-8") as f:
        if skip_header:
            next(f, None)
        for line in f:
            yield line.rstrip("\r\n")
