"""Models for test run and scan outcomes.

Success is the absence of a record: a test with no failures produces no
``TestResult``. Callers that need pass counts use ``ScanOutcome.passed``.
"""

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True, kw_only=True)
class Span:
    """Half-open ``[start, end)`` character offsets into a block of source text."""

    start: int
    end: int


@dataclass(frozen=True, kw_only=True)
class Failure:
    """One violated assertion or one error raised by a single fragment."""

    message: str
    span: Span | None = None


@dataclass(frozen=True, kw_only=True)
class TestResult:
    """Failures of one test, in evaluation order."""

    __test__ = False

    test_name: str
    failures: Sequence[Failure]
    span: Span | None = None


@dataclass(frozen=True, kw_only=True)
class ScanOutcome:
    """Everything a scan of one block of source text produced."""

    attempted: int
    results: Sequence[TestResult]
    dependency_failures: Sequence[Failure] = ()
    parse_failure: Failure | None = None

    @property
    def passed(self) -> int:
        """Number of attempted tests that reported no failures."""
        return self.attempted - len(self.results)

    @property
    def ok(self) -> bool:
        """Whether the scan found nothing to report."""
        return (
            not self.results
            and not self.dependency_failures
            and self.parse_failure is None
        )
