"""Reading top-level forms out of a block of Python source.

A form is one top-level statement. ``FormReader`` cuts the text into
top-level chunks with ``tokenize`` and parses each chunk with ``ast`` while
keeping absolute positions, so every syntax node maps back to character
offsets in the original text.
"""

import ast
import bisect
import io
import logging
import re
import tokenize
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Literal, TypeVar

from inline_test.models.report import Span

log = logging.getLogger(__name__)

DEFAULT_KEYWORD = "deftest"

# Positional slots of a test form: the decorator, the name, then the body.
KEYWORD_SLOT = 0
NAME_SLOT = 1
FIRST_BODY_SLOT = 2

_CONTINUATIONS = frozenset({"else", "elif", "except", "finally"})
_LAYOUT_TOKENS = frozenset(
    {
        tokenize.ENCODING,
        tokenize.NL,
        tokenize.COMMENT,
        tokenize.ENDMARKER,
    }
)
_DEF_NAME = re.compile(r"def\s+(\w+)")

F = TypeVar("F", bound=Callable[..., object])


def deftest(function: F) -> F:
    """Declare ``function`` as an inline test.

    The scanner reads the decorated body statement by statement instead of
    calling the function; applied at runtime the decorator only tags it.
    """
    setattr(function, "__inline_test__", True)
    return function


class ParseError(Exception):
    """Raised when a top-level form cannot be read."""


class SourceIndex:
    """Converts between ``(line, column)`` positions and character offsets."""

    def __init__(self, text: str) -> None:
        self.text = text
        self._line_starts = [0] + [m.end() for m in re.finditer("\n", text)]

    def line_start(self, lineno: int) -> int:
        """Offset of the first character of 1-based line ``lineno``."""
        return self._line_starts[min(lineno, len(self._line_starts)) - 1]

    def char_offset(self, lineno: int, column: int) -> int:
        """Offset of a ``tokenize`` position (column counted in characters)."""
        return min(self.line_start(lineno) + column, len(self.text))

    def offset(self, lineno: int, col_offset: int) -> int:
        """Offset of an ``ast`` position (column counted in UTF-8 bytes)."""
        start = self.line_start(lineno)
        line = self.text[start : start + col_offset]
        if line.isascii():
            return start + col_offset
        prefix = line.encode("utf-8")[:col_offset].decode("utf-8", errors="ignore")
        return start + len(prefix)

    def span(self, node: ast.expr | ast.stmt) -> Span:
        """Span of a positioned ``ast`` node."""
        start = self.offset(node.lineno, node.col_offset)
        if node.end_lineno is None or node.end_col_offset is None:
            return Span(start=start, end=start)
        return Span(start=start, end=self.offset(node.end_lineno, node.end_col_offset))

    def position(self, offset: int) -> tuple[int, int]:
        """1-based line and 0-based column of ``offset``."""
        offset = max(0, min(offset, len(self.text)))
        line = bisect.bisect_right(self._line_starts, offset)
        return line, offset - self._line_starts[line - 1]


@dataclass(frozen=True, kw_only=True)
class Form:
    """One top-level statement with the spans of its immediate children.

    For a test form the children are, in order: the declaring decorator, the
    function name and each statement of the body.
    """

    kind: Literal["test", "dependency", "other"]
    span: Span
    children: Sequence[Span]
    statement: ast.stmt = field(repr=False, compare=False)
    name: str | None = None
    doc: str | None = None

    @property
    def body(self) -> Sequence[ast.stmt]:
        """Statements of a test form's body; empty for other forms."""
        if isinstance(self.statement, ast.FunctionDef):
            return self.statement.body
        return ()

    def child_span(self, index: int) -> Span:
        """Span of the ``index``-th immediate child of the form."""
        if not 0 <= index < len(self.children):
            raise IndexError(
                f"Form has {len(self.children)} children, no child at {index}"
            )
        return self.children[index]


class FormReader:
    """Lazily reads the top-level forms of a block of source text.

    Iteration yields forms in source order and raises ``ParseError`` at the
    first form that cannot be read; every form before it has been yielded.
    """

    def __init__(
        self,
        text: str,
        *,
        keyword: str = DEFAULT_KEYWORD,
        filename: str = "<scan>",
    ) -> None:
        self.text = text
        self.keyword = keyword
        self.filename = filename
        self.index = SourceIndex(text)

    def __iter__(self) -> Iterator[Form]:
        for start, end in self._chunks():
            for statement in self._parse_chunk(start, end):
                yield self._form(statement)

    def _chunks(self) -> Iterator[tuple[int, int]]:
        """Yield ``(start, end)`` offsets of each top-level chunk."""
        readline = io.StringIO(self.text).readline
        depth = 0
        at_line_start = True
        decorator_line = False
        start: int | None = None
        end = 0
        end_line = 0

        try:
            for token in tokenize.generate_tokens(readline):
                if token.type == tokenize.INDENT:
                    depth += 1
                    continue
                if token.type == tokenize.DEDENT:
                    depth -= 1
                    continue
                if token.type == tokenize.NEWLINE:
                    at_line_start = True
                    continue
                if token.type in _LAYOUT_TOKENS:
                    continue

                if at_line_start:
                    at_line_start = False
                    line_start = self.index.line_start(token.start[0])
                    if start is None:
                        start = line_start
                    elif depth == 0 and not decorator_line and not _continues(token):
                        yield start, end
                        start = line_start
                    if depth == 0:
                        decorator_line = token.exact_type == tokenize.AT
                end = self.index.char_offset(*token.end)
                end_line = token.end[0]
        except (tokenize.TokenError, SyntaxError) as error:
            lineno, message = _error_position(error)
            # A failing line that opens a new top-level statement leaves the
            # chunk read so far complete.
            if (
                start is not None
                and at_line_start
                and not decorator_line
                and lineno > end_line
                and self._starts_top_level(lineno)
            ):
                yield start, end
            raise ParseError(f"line {lineno}: {message}") from error

        if start is not None:
            yield start, end

    def _starts_top_level(self, lineno: int) -> bool:
        start = self.index.line_start(lineno)
        return not self.text[start : start + 1].isspace()

    def _parse_chunk(self, start: int, end: int) -> Sequence[ast.stmt]:
        lineno = self.text.count("\n", 0, start) + 1
        # Leading newlines keep ast line numbers absolute.
        source = "\n" * (lineno - 1) + self.text[start:end]
        try:
            module = ast.parse(source, self.filename)
        except SyntaxError as error:
            raise ParseError(f"line {error.lineno}: {error.msg}") from error
        return module.body

    def _form(self, statement: ast.stmt) -> Form:
        span = self._statement_span(statement)

        if isinstance(statement, ast.Import | ast.ImportFrom):
            return Form(
                kind="dependency",
                span=span,
                children=self._child_spans(statement),
                statement=statement,
                name=_imported_module(statement),
            )

        decorator = self._declaring_decorator(statement)
        if decorator is None:
            return Form(
                kind="other",
                span=span,
                children=self._child_spans(statement),
                statement=statement,
            )

        if not isinstance(statement, ast.FunctionDef):
            lineno, _ = self.index.position(span.start)
            raise ParseError(
                f"line {lineno}: @{self.keyword} must decorate a plain function"
            )

        children = [
            self.index.span(decorator),
            self._name_span(statement),
            *(self.index.span(body) for body in statement.body),
        ]
        log.debug("Read test form '%s' at %d-%d", statement.name, span.start, span.end)
        return Form(
            kind="test",
            span=span,
            children=children,
            statement=statement,
            name=statement.name,
            doc=ast.get_docstring(statement),
        )

    def _statement_span(self, statement: ast.stmt) -> Span:
        span = self.index.span(statement)
        decorators = getattr(statement, "decorator_list", None)
        if not decorators:
            return span
        first = self.index.span(decorators[0])
        at_sign = self.text.rfind("@", 0, first.start)
        return Span(start=at_sign if at_sign >= 0 else first.start, end=span.end)

    def _child_spans(self, statement: ast.stmt) -> Sequence[Span]:
        return [
            self.index.span(child)
            for child in ast.iter_child_nodes(statement)
            if hasattr(child, "lineno") and child.end_lineno is not None
        ]

    def _name_span(self, statement: ast.FunctionDef) -> Span:
        def_start = self.index.offset(statement.lineno, statement.col_offset)
        match = _DEF_NAME.search(self.text, def_start)
        if match is None:  # pragma: no cover
            return Span(start=def_start, end=def_start)
        return Span(start=match.start(1), end=match.end(1))

    def _declaring_decorator(self, statement: ast.stmt) -> ast.expr | None:
        for decorator in getattr(statement, "decorator_list", ()):
            target = decorator.func if isinstance(decorator, ast.Call) else decorator
            if isinstance(target, ast.Name) and target.id == self.keyword:
                return decorator
            if isinstance(target, ast.Attribute) and target.attr == self.keyword:
                return decorator
        return None


def _continues(token: tokenize.TokenInfo) -> bool:
    """Whether a line starting with ``token`` continues a compound statement."""
    return token.type == tokenize.NAME and token.string in _CONTINUATIONS


def _error_position(error: tokenize.TokenError | SyntaxError) -> tuple[int, str]:
    if isinstance(error, tokenize.TokenError):
        message, (lineno, _) = error.args
        return lineno, message
    return error.lineno or 0, error.msg


def _imported_module(statement: ast.Import | ast.ImportFrom) -> str:
    if isinstance(statement, ast.ImportFrom):
        return "." * statement.level + (statement.module or "")
    return ", ".join(alias.name for alias in statement.names)
