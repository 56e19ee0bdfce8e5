"""Test factories for generating report data."""

from polyfactory import Use
from polyfactory.factories import DataclassFactory

from inline_test.models.report import Failure, ScanOutcome, Span, TestResult


class SpanFactory(DataclassFactory[Span]):
    """Factory for Span."""

    __model__ = Span

    start = Use(DataclassFactory.__random__.randint, 0, 40)
    end = Use(DataclassFactory.__random__.randint, 40, 80)


class FailureFactory(DataclassFactory[Failure]):
    """Factory for Failure."""

    __model__ = Failure

    span = None


class TestResultFactory(DataclassFactory[TestResult]):
    """Factory for TestResult."""

    __model__ = TestResult

    failures = Use(lambda: FailureFactory.batch(size=1))
    span = None


class ScanOutcomeFactory(DataclassFactory[ScanOutcome]):
    """Factory for ScanOutcome."""

    __model__ = ScanOutcome

    attempted = 0
    results = Use(list)
    dependency_failures = Use(list)
    parse_failure = None
