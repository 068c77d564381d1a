"""Rendering of the final Top-N list, one "<total>--<key>" line per entry."""

import sys
from collections.abc import Iterable
from typing import TextIO

from src.top_n.records import TopNEntry


def format_entry(entry: TopNEntry) -> str:
    return f"{entry.total}--{entry.key}"


def emit(entries: Iterable[TopNEntry], stream: TextIO | None = None) -> None:
    """Print entries best-first to stream (stdout by default)."""
    out = stream if stream is not None else sys.stdout
    for entry in entries:
        print(format_entry(entry), file=out)
