"""Assertion primitives available inside test bodies.

Every primitive is expressed through ``assert_custom`` so that failures share
one message shape: ``"<assertion name>: <description>"``.
"""

import ast
import inspect
import numbers
import re
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

from inline_test.models.entry import Fragment

__all__ = [
    "AssertionFailure",
    "assert_custom",
    "assert_equal",
    "assert_exactly_true",
    "assert_falsy",
    "assert_identical",
    "assert_numeric_equal",
    "assert_raises",
    "assert_truthy",
]

_current_fragment: ContextVar[Fragment | None] = ContextVar(
    "inline_test_current_fragment", default=None
)


class AssertionFailure(AssertionError):
    """Raised by an assertion primitive when its check does not hold."""

    def __init__(self, assertion: str, description: str) -> None:
        super().__init__(f"{assertion}: {description}")
        self.assertion = assertion
        self.description = description


@contextmanager
def evaluating(fragment: Fragment) -> Iterator[None]:
    """Mark ``fragment`` as the one being evaluated, for failure messages."""
    token = _current_fragment.set(fragment)
    try:
        yield
    finally:
        _current_fragment.reset(token)


def argument_source(assertion: str, index: int) -> str | None:
    """Return the source of argument ``index`` of the ``assertion`` call.

    Looks at the fragment currently being evaluated. When the fragment holds
    several matching calls, the one executing in the fragment's frame is
    used. Returns ``None`` when there is no fragment or the call cannot be
    told apart.
    """
    fragment = _current_fragment.get()
    if fragment is None or (tree := fragment.syntax()) is None:
        return None

    calls = [
        node
        for node in ast.walk(tree)
        if isinstance(node, ast.Call)
        and len(node.args) > index
        and _called_name(node) == assertion
    ]
    if len(calls) > 1:
        position = _executing_position(fragment.filename)
        calls = [call for call in calls if _position(call) == position]
    if len(calls) != 1:
        return None
    return ast.unparse(calls[0].args[index])


def _called_name(call: ast.Call) -> str | None:
    if isinstance(call.func, ast.Attribute):
        return call.func.attr
    return getattr(call.func, "id", None)


def _position(node: ast.expr) -> tuple[int | None, ...]:
    return (node.lineno, node.end_lineno, node.col_offset, node.end_col_offset)


def _executing_position(filename: str) -> tuple[int | None, ...] | None:
    """Source position of the instruction running in the innermost frame of
    code compiled from ``filename``."""
    frame = inspect.currentframe()
    try:
        while frame is not None and frame.f_code.co_filename != filename:
            frame = frame.f_back
        if frame is None or frame.f_lasti < 0:
            return None
        positions = list(frame.f_code.co_positions())
        return positions[frame.f_lasti // 2]
    finally:
        del frame


def assert_custom(
    predicate: Callable[[Any], object],
    value: Any,
    name: str | None = None,
    describe: Callable[[Any], str] | None = None,
) -> None:
    """Fail unless ``predicate(value)`` is true.

    Args:
        predicate: Check applied to ``value``
        value: Already evaluated value under test
        name: Assertion name used in the failure message (defaults to the
            predicate's ``__name__``)
        describe: Builds the failure description from ``value`` (defaults to
            ``"was <value>"``)

    Raises:
        AssertionFailure: If the predicate returns a false value

    """
    if predicate(value):
        return
    assertion = name or getattr(predicate, "__name__", repr(predicate))
    description = describe(value) if describe else f"was {value!r}"
    raise AssertionFailure(assertion, description)


def _compared(assertion: str, expected: Any, relation: str) -> Callable[[Any], str]:
    def describe(actual: Any) -> str:
        form = argument_source(assertion, 1)
        subject = f"`{form}`" if form is not None else "value"
        return f"expected {relation} {expected!r}, but {subject} was {actual!r}"

    return describe


def assert_equal(expected: Any, actual: Any) -> None:
    """Fail unless ``expected == actual``."""
    assert_custom(
        lambda value: expected == value,
        actual,
        "assert_equal",
        _compared("assert_equal", expected, "a value equal to"),
    )


def assert_identical(expected: Any, actual: Any) -> None:
    """Fail unless ``expected is actual``."""
    assert_custom(
        lambda value: expected is value,
        actual,
        "assert_identical",
        _compared("assert_identical", expected, "the very object"),
    )


def _is_scalar(value: Any) -> bool:
    if isinstance(value, numbers.Number):
        return True
    return isinstance(value, str) and len(value) == 1


def assert_numeric_equal(expected: Any, actual: Any) -> None:
    """Fail unless the values are identical or same-typed equal scalars.

    Numbers and single characters compare by type and value, so ``1`` and
    ``1.0`` are not numerically equal here. Anything else compares by identity.
    """

    def same(value: Any) -> bool:
        if expected is value:
            return True
        return (
            _is_scalar(expected)
            and type(expected) is type(value)
            and expected == value
        )

    assert_custom(
        same,
        actual,
        "assert_numeric_equal",
        _compared("assert_numeric_equal", expected, "a scalar equal to"),
    )


def assert_truthy(value: Any) -> None:
    """Fail unless ``value`` is truthy."""
    assert_custom(
        bool,
        value,
        "assert_truthy",
        lambda v: f"expected a truthy value, was {v!r}",
    )


def assert_exactly_true(value: Any) -> None:
    """Fail unless ``value is True``."""
    assert_custom(
        lambda v: v is True,
        value,
        "assert_exactly_true",
        lambda v: f"expected True, was {v!r}",
    )


def assert_falsy(value: Any) -> None:
    """Fail unless ``value is False``."""
    assert_custom(
        lambda v: v is False,
        value,
        "assert_falsy",
        lambda v: f"expected False, was {v!r}",
    )


_NO_ERROR = object()


def assert_raises(pattern: str, block: Callable[[], object]) -> None:
    """Fail unless calling ``block`` raises an error matching ``pattern``.

    An empty ``pattern`` accepts any error. A non-empty one is searched for in
    the error's message with ``re.search``.
    """
    try:
        block()
    except Exception as error:
        raised: object = error
    else:
        raised = _NO_ERROR

    def matches(error: object) -> bool:
        if error is _NO_ERROR:
            return False
        return not pattern or re.search(pattern, str(error)) is not None

    def describe(error: object) -> str:
        if error is _NO_ERROR:
            return "did not raise an error"
        return f"expected an error matching {pattern!r}, got {str(error)!r}"

    assert_custom(matches, raised, "assert_raises", describe)
