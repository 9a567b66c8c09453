# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
What a test run hands back to its caller.

Frozen dataclasses, one per test kind. A literal test produces exactly one
StringTestResult; a linked test produces a RefTestResult holding one
SubTestResult per record it ran. A failing test is a result, never an
exception.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

from erunner.selector.evaluator import SubTestRange


def outputs_match(actual: str, expected: str) -> bool:
    """Outputs are compared with leading and trailing whitespace ignored."""
    return actual.strip() == expected.strip()


@dataclass(frozen=True)
class StringTestResult:
    """Result of one literal test."""

    index: int
    passed: bool
    output: str
    elapsed_seconds: float = 0.0
    failure_reason: Optional[str] = None


@dataclass(frozen=True)
class SubTestResult:
    """Result of one record inside a linked test file."""

    index: int
    passed: bool
    output: str
    expected_output: str
    elapsed_seconds: float = 0.0
    failure_reason: Optional[str] = None


@dataclass(frozen=True)
class RefTestResult:
    """
    Result of a linked test.

    `error` is set when the linked file couldn't be opened or stopped
    parsing part way; the records read before the error are still in
    `records`.
    """

    index: int
    source: Path
    records: tuple[SubTestResult, ...] = ()
    sub_range: Optional[SubTestRange] = None
    error: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.records)

    @property
    def passed_count(self) -> int:
        return sum(1 for record in self.records if record.passed)

    @property
    def passed(self) -> bool:
        if self.error is not None:
            return False
        # A selection that matched no record selected nothing that exists.
        if self.sub_range is not None and not self.records:
            return False
        return self.passed_count == self.total


TestOutcome = Union[StringTestResult, RefTestResult]


@dataclass(frozen=True)
class RunReport:
    """All results of one `run` or `run-at` invocation, in execution order."""

    filename: str
    results: tuple[TestOutcome, ...] = field(default_factory=tuple)

    @property
    def passed(self) -> bool:
        return all(result.passed for result in self.results)

    @property
    def passed_count(self) -> int:
        return sum(1 for result in self.results if result.passed)


@dataclass(frozen=True)
class FileStatus:
    """One line of `status`: a tracked file and what's registered for it."""

    filename: str
    source_hash: str
    test_kinds: str

    @property
    def test_count(self) -> int:
        return len(self.test_kinds)


@dataclass(frozen=True)
class RecompileSummary:
    rebuilt: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()
    up_to_date: tuple[str, ...] = ()
