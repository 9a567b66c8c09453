# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Selector expressions: which registered tests to run.

Tests are numbered from 1 in registration order. A linked test expands into
sub-tests, numbered from 1 within it. A selector is a comma-separated list
of pieces, each one of:

    N          every sub-test of test N (or test N itself if it's literal)
    N.M        sub-test M of test N
    A-B        tests A through B
    A.a-B.b    sub-test a of A through sub-test b of B

Either side of a range may leave out its sub-test: a missing start means
"from the first sub-test", a missing end means "to the last one".

    "1.2-3.2"  ->  1.2..end, 2, 3.1..2

Pieces are evaluated left to right and their results concatenated; the
first malformed piece aborts the whole evaluation.
"""

import re
import sys
from dataclasses import dataclass
from typing import Optional

# Stand-in for "to the last sub-test". Consumers stop when the file runs out.
MAX_SUB_INDEX = sys.maxsize

_NUMBER = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class SubTestRange:
    """Inclusive range of 1-based sub-test indices."""

    first: int
    last: int

    def __contains__(self, index: object) -> bool:
        return isinstance(index, int) and self.first <= index <= self.last

    @property
    def unbounded(self) -> bool:
        return self.last == MAX_SUB_INDEX

    def __str__(self) -> str:
        return f"{self.first}..{'end' if self.unbounded else self.last}"


@dataclass(frozen=True)
class TestsRange:
    """One selected main test, optionally narrowed to a range of its sub-tests."""

    __test__ = False

    main_index: int
    sub_range: Optional[SubTestRange] = None

    def __str__(self) -> str:
        if self.sub_range is None:
            return str(self.main_index)
        return f"{self.main_index}.{self.sub_range}"


class SelectorError(ValueError):
    """A selector piece could not be parsed."""

    def __init__(self, reason: str, token: str, expression: str) -> None:
        self.reason = reason
        self.token = token
        self.expression = expression
        super().__init__(f"{reason}: {token!r} (in {expression!r})")


class InvalidRangeFormatError(SelectorError):
    """Wrong number of `-` or `.` separators."""


class InvalidNumberError(SelectorError):
    """A segment that should be a non-negative integer isn't one."""


def _parse_number(token: str, expression: str) -> int:
    if not _NUMBER.fullmatch(token):
        raise InvalidNumberError("Invalid number", token, expression)
    return int(token)


def _parse_reference(part: str, expression: str) -> tuple[int, Optional[int]]:
    """Split `N` or `N.M` into (main, sub-or-None)."""
    pieces = part.split(".")
    if len(pieces) > 2:
        raise InvalidRangeFormatError(
            "Test reference must have at most one '.'", part, expression
        )
    main = _parse_number(pieces[0].strip(), expression)
    sub = _parse_number(pieces[1].strip(), expression) if len(pieces) == 2 else None
    return main, sub


def evaluate_expression(expression: str) -> list[TestsRange]:
    """
    Evaluate one comma-free selector piece.

    Raises:
        InvalidRangeFormatError: Malformed range or reference.
        InvalidNumberError: Non-numeric segment.
    """
    if "-" in expression:
        parts = expression.split("-")
        if len(parts) != 2:
            raise InvalidRangeFormatError(
                "Range must have exactly one '-'", expression, expression
            )

        main_start, sub_start = _parse_reference(parts[0].strip(), expression)
        main_end, sub_end = _parse_reference(parts[1].strip(), expression)
        first = 1 if sub_start is None else sub_start
        last = MAX_SUB_INDEX if sub_end is None else sub_end

        # Backwards ranges are accepted; nothing lies between their ends.
        if main_start == main_end:
            return [TestsRange(main_start, SubTestRange(first, last))]

        ranges = [TestsRange(main_start, SubTestRange(first, MAX_SUB_INDEX))]
        ranges.extend(TestsRange(main) for main in range(main_start + 1, main_end))
        ranges.append(TestsRange(main_end, SubTestRange(1, last)))
        return ranges

    main, sub = _parse_reference(expression, expression)
    if sub is None:
        return [TestsRange(main)]
    return [TestsRange(main, SubTestRange(sub, sub))]


def evaluate(expressions: str) -> list[TestsRange]:
    """
    Evaluate a full comma-separated selector.

    Raises:
        SelectorError: For the first piece that fails to parse; its
            `expression` attribute names that piece.
    """
    results: list[TestsRange] = []
    for piece in expressions.split(","):
        results.extend(evaluate_expression(piece.strip()))
    return results
