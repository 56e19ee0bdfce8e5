"""Models for registered tests and groups."""

import ast
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from types import CodeType

from inline_test.models.report import Span


class EntryKind(Enum):
    """Kind of a registry entry."""

    TEST = "test"
    GROUP = "group"


@dataclass(frozen=True, kw_only=True)
class Fragment:
    """One statement of a test body.

    A fragment is evaluated either from its parsed statement (when it was read
    from a larger block and must keep its original line numbers), from its
    source text, or by calling ``function``.
    """

    source: str
    span: Span | None = None
    statement: ast.stmt | None = field(default=None, repr=False, compare=False)
    function: Callable[[], object] | None = field(
        default=None, repr=False, compare=False
    )
    filename: str = "<fragment>"

    @classmethod
    def of(cls, item: "Fragment | str | Callable[[], object]") -> "Fragment":
        """Normalize a body item given to ``Registry.define``."""
        if isinstance(item, Fragment):
            return item
        if isinstance(item, str):
            return cls(source=item)
        if callable(item):
            name = getattr(item, "__qualname__", repr(item))
            return cls(source=f"{name}()", function=item)
        raise TypeError(f"Unsupported test body item: {item!r}")

    def compile(self) -> CodeType:
        """Compile the fragment for ``exec``."""
        if self.statement is not None:
            module = ast.Module(body=[self.statement], type_ignores=[])
            return compile(module, self.filename, "exec")
        return compile(self.source, self.filename, "exec")

    def syntax(self) -> ast.AST | None:
        """Return the parsed form of the fragment, if it has one."""
        if self.statement is not None:
            return self.statement
        if self.function is not None:
            return None
        try:
            return ast.parse(self.source, self.filename)
        except SyntaxError:
            return None


@dataclass(frozen=True, kw_only=True)
class TestEntry:
    """A named test (fragments) or group (member names)."""

    __test__ = False

    name: str
    kind: EntryKind
    body: Sequence[Fragment] | Sequence[str]
    doc: str | None = None
