"""Tests for assertion primitives."""

import pytest

from inline_test.assertions import (
    AssertionFailure,
    argument_source,
    assert_custom,
    assert_equal,
    assert_exactly_true,
    assert_falsy,
    assert_identical,
    assert_numeric_equal,
    assert_raises,
    assert_truthy,
    evaluating,
)
from inline_test.models.entry import Fragment


def is_even(value: int) -> bool:
    """Predicate used by assert_custom tests."""
    return value % 2 == 0


class TestAssertEqual:
    """Tests for assert_equal."""

    def test_passes_for_structurally_equal_values(self) -> None:
        """Compares nested containers by value."""
        assert_equal({"a": [1, 2]}, {"a": [1, 2]})

    def test_failure_names_both_values(self) -> None:
        """Failure message embeds the expected and actual values."""
        with pytest.raises(AssertionFailure) as exc_info:
            assert_equal(4, 5)

        assert str(exc_info.value) == (
            "assert_equal: expected a value equal to 4, but value was 5"
        )

    def test_failure_names_actual_expression(self) -> None:
        """Uses the source of the actual argument when a fragment is evaluated."""
        fragment = Fragment(source="assert_equal(4, 2 + 3)")

        with evaluating(fragment), pytest.raises(AssertionFailure) as exc_info:
            assert_equal(4, 2 + 3)

        assert str(exc_info.value) == (
            "assert_equal: expected a value equal to 4, but `2 + 3` was 5"
        )


def test_assert_identical_requires_same_object() -> None:
    """Equal but distinct objects are not identical."""
    shared: list[int] = []
    assert_identical(shared, shared)

    with pytest.raises(AssertionFailure, match="^assert_identical: "):
        assert_identical([], [])


@pytest.mark.parametrize(
    ("expected", "actual"),
    [
        (1, 1),
        (int("1" * 30), int("1" * 30)),
        (2.5, 2.5),
        ("a", "a"),
    ],
)
def test_assert_numeric_equal_accepts_same_typed_scalars(
    expected: object, actual: object
) -> None:
    """Numbers and characters compare by type and value."""
    assert_numeric_equal(expected, actual)


@pytest.mark.parametrize(
    ("expected", "actual"),
    [
        (1, 1.0),
        (1, 2),
        ([1], [1]),
        ("ab", "".join(["a", "b"])),
    ],
)
def test_assert_numeric_equal_rejects_other_values(
    expected: object, actual: object
) -> None:
    """Mixed types, different numbers and non-scalars do not match."""
    with pytest.raises(AssertionFailure, match="^assert_numeric_equal: "):
        assert_numeric_equal(expected, actual)


def test_assert_truthy() -> None:
    """Accepts any truthy value and describes falsy ones."""
    assert_truthy([0])

    with pytest.raises(AssertionFailure) as exc_info:
        assert_truthy("")

    assert str(exc_info.value) == "assert_truthy: expected a truthy value, was ''"


def test_assert_exactly_true_rejects_truthy_non_booleans() -> None:
    """Only True itself passes."""
    assert_exactly_true(True)

    with pytest.raises(AssertionFailure, match="expected True, was 1"):
        assert_exactly_true(1)


@pytest.mark.parametrize("value", [None, 0, "", []])
def test_assert_falsy_requires_false(value: object) -> None:
    """Falsy values other than False fail."""
    assert_falsy(False)

    with pytest.raises(AssertionFailure, match="^assert_falsy: expected False"):
        assert_falsy(value)


class TestAssertRaises:
    """Tests for assert_raises."""

    def test_passes_when_message_matches(self) -> None:
        """Searches the error message with the pattern."""
        assert_raises(r"invalid literal", lambda: int("x"))

    def test_empty_pattern_accepts_any_error(self) -> None:
        """Any raised exception satisfies an empty pattern."""
        assert_raises("", lambda: {}["missing"])

    def test_fails_when_block_returns(self) -> None:
        """A block that does not raise is a failure."""
        with pytest.raises(AssertionFailure) as exc_info:
            assert_raises("", lambda: None)

        assert str(exc_info.value) == "assert_raises: did not raise an error"

    def test_fails_when_message_does_not_match(self) -> None:
        """Names the expected pattern and the actual message."""
        with pytest.raises(AssertionFailure) as exc_info:
            assert_raises("overflow", lambda: 1 / 0)

        message = str(exc_info.value)
        assert "expected an error matching 'overflow'" in message
        assert "division by zero" in message


class TestAssertCustom:
    """Tests for assert_custom."""

    def test_passes_when_predicate_holds(self) -> None:
        """Returns None for a true predicate."""
        assert assert_custom(is_even, 4) is None

    def test_defaults_to_predicate_name(self) -> None:
        """Derives the assertion name and description when not given."""
        with pytest.raises(AssertionFailure) as exc_info:
            assert_custom(is_even, 3)

        assert str(exc_info.value) == "is_even: was 3"
        assert exc_info.value.assertion == "is_even"

    def test_uses_given_name_and_describer(self) -> None:
        """Custom name and describer shape the message."""
        with pytest.raises(AssertionFailure) as exc_info:
            assert_custom(
                is_even,
                7,
                "assert_even",
                lambda value: f"{value} is odd",
            )

        assert str(exc_info.value) == "assert_even: 7 is odd"


def test_argument_source_without_fragment() -> None:
    """Returns None outside of an evaluation."""
    assert argument_source("assert_equal", 1) is None


def test_argument_source_finds_attribute_calls() -> None:
    """Finds calls made through a module attribute."""
    fragment = Fragment(source="checks.assert_equal(1, value[0])")

    with evaluating(fragment):
        assert argument_source("assert_equal", 1) == "value[0]"


def test_argument_source_is_none_for_ambiguous_calls() -> None:
    """Several matching calls outside the fragment's own frame are not guessed."""
    fragment = Fragment(source="assert_equal(1, a)\nassert_equal(1, b)")

    with evaluating(fragment):
        assert argument_source("assert_equal", 1) is None
