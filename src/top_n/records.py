"""
Records, aggregates and the "key,value" line parser.

Input record format:
    <string-key><,><numeric-value>

The value is an ASCII base-10 integer or decimal literal (12, -3.5, 1e3).
The key is everything before the LAST comma, so keys such as URLs with
query strings survive.
"""

import logging
import re
from collections.abc import Callable, Iterable, Iterator
from fractions import Fraction
from typing import NamedTuple

from src.top_n.errors import InvalidRecord

logger = logging.getLogger(__name__)

Number = int | float | Fraction

# ASCII digits only: no "1_000", no non-Latin digits
_INTEGER = re.compile(r"[+-]?[0-9]+\Z")
_DECIMAL = re.compile(r"[+-]?([0-9]+\.[0-9]*|\.[0-9]+|[0-9]+)([eE][+-]?[0-9]+)?\Z")
_NON_FINITE = re.compile(r"[+-]?(inf|infinity|nan)\Z", re.IGNORECASE)


class Record(NamedTuple):
    """One parsed input line."""

    key: str
    value: Number


class Aggregate(NamedTuple):
    """Sum of all values seen for one key."""

    key: str
    total: Number


class TopNEntry(NamedTuple):
    """An Aggregate admitted into the Top-N result."""

    key: str
    total: Number


def parse_value(token: str) -> Number:
    """
    Parse an ASCII base-10 numeric token.

    Integers stay int. Decimal and exponent literals become exact Fractions,
    so that sums do not depend on the order in which they are added.

    Raises:
        InvalidRecord: If the token is not a finite base-10 number
    """
    token = token.strip()
    if _INTEGER.match(token):
        return int(token)
    if _DECIMAL.match(token):
        return Fraction(token)
    if _NON_FINITE.match(token):
        raise InvalidRecord(f"value {token!r} is not finite")
    raise InvalidRecord(f"value {token!r} is not a number")


def parse_record(line: str, line_number: int | None = None) -> Record:
    """
    Parse a "key,value" line into a Record.

    Args:
        line: Raw input line (surrounding whitespace is ignored)
        line_number: Optional position, only used in error messages

    Returns:
        The parsed Record

    Raises:
        InvalidRecord: On a missing separator, empty key or bad value
    """
    stripped = line.strip()
    key, sep, token = stripped.rpartition(",")
    if not sep:
        raise InvalidRecord("expected 'key,value'", line=line, line_number=line_number)
    key = key.strip()
    if not key:
        raise InvalidRecord("empty key", line=line, line_number=line_number)
    try:
        value = parse_value(token)
    except InvalidRecord as e:
        raise InvalidRecord(str(e), line=line, line_number=line_number) from None
    return Record(key, value)


def parse_numbered(
    numbered_lines: Iterable[tuple[int | None, str]],
    strict: bool = False,
) -> Iterator[Record]:
    """
    Lazily parse (line_number, line) pairs into Records.

    Blank lines are skipped. A malformed line either raises (strict) or is
    dropped with a warning.
    """
    for line_number, line in numbered_lines:
        if not line.strip():
            continue
        try:
            yield parse_record(line, line_number)
        except InvalidRecord as e:
            if strict:
                raise
            logger.warning("Dropping invalid record: %s", e)


def parse_lines(
    lines: Iterable[str],
    strict: bool = False,
    first_line_number: int = 1,
) -> Iterator[Record]:
    """Lazily parse lines into Records, numbering them from first_line_number."""
    return parse_numbered(enumerate(lines, start=first_line_number), strict)


def parse_partition(strict: bool = False) -> Callable[[Iterable[str]], Iterator[Record]]:
    """Return a mapPartitions function that parses one partition of lines."""

    def _parse(partition: Iterable[str]) -> Iterator[Record]:
        # line numbers are partition-relative here, so leave them out
        return parse_numbered(((None, line) for line in partition), strict)

    return _parse
