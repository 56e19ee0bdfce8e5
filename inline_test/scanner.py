"""Scanner that discovers and runs the tests declared in a block of source."""

import ast
import importlib
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from inline_test.config import ScanConfig
from inline_test.executor import TestExecutor, default_namespace, describe_error
from inline_test.models.entry import EntryKind, Fragment
from inline_test.models.report import Failure, ScanOutcome, Span, TestResult
from inline_test.registry import Registry
from inline_test.syntax import FIRST_BODY_SLOT, Form, FormReader, ParseError

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class Scanner:
    """Walks source text, running only test and dependency declarations.

    Any other top-level statement is skipped without being evaluated. Imports
    land in the executor's namespace, which is shared by every scan made
    through this scanner and by later runs of the discovered tests by name.
    """

    registry: Registry
    executor: TestExecutor
    keyword: str

    @classmethod
    def from_config(
        cls, registry: Registry, config: ScanConfig | None = None
    ) -> "Scanner":
        """Create a scanner with a fresh session namespace."""
        config = config or ScanConfig()
        namespace = default_namespace()
        executor = TestExecutor(registry=registry, namespace=namespace)
        namespace.update(
            define=registry.define,
            define_group=registry.define_group,
            run=executor.run,
            EntryKind=EntryKind,
        )
        for module in config.preload:
            log.debug("Preloading %s", module)
            importlib.import_module(module)
            top_level = module.partition(".")[0]
            namespace[top_level] = importlib.import_module(top_level)
        return cls(registry=registry, executor=executor, keyword=config.keyword)

    @property
    def namespace(self) -> dict[str, Any]:
        """Session namespace shared by every scan."""
        return self.executor.namespace

    def scan(self, text: str, filename: str = "<scan>") -> ScanOutcome:
        """Discover and run every test declared in ``text``.

        Args:
            text: Block of Python source
            filename: Name used in tracebacks and logs

        Returns:
            Counts and failures of the scan. Tests that pass leave no result.
            Reading stops at the first malformed form, which is reported in
            ``parse_failure``; later forms are neither read nor run.

        """
        attempted = 0
        results: list[TestResult] = []
        dependency_failures: list[Failure] = []
        parse_failure: Failure | None = None
        position = 0

        reader = FormReader(text, keyword=self.keyword, filename=filename)
        try:
            for form in reader:
                if form.kind == "dependency":
                    if (failure := self._load_dependency(form, filename)) is not None:
                        dependency_failures.append(failure)
                elif form.kind == "test":
                    attempted += 1
                    if (result := self._run_test(form, text, filename)) is not None:
                        results.append(result)
                position = form.span.end
        except ParseError as error:
            log.warning("Stopped scanning %s: %s", filename, error)
            parse_failure = Failure(
                message=f"Parse error: {error}",
                span=Span(start=position, end=len(text)),
            )

        log.info(
            "Scanned %s: %d test(s), %d failed", filename, attempted, len(results)
        )
        return ScanOutcome(
            attempted=attempted,
            results=results,
            dependency_failures=dependency_failures,
            parse_failure=parse_failure,
        )

    def _load_dependency(self, form: Form, filename: str) -> Failure | None:
        module = ast.Module(body=[form.statement], type_ignores=[])
        code = compile(module, filename, "exec")
        log.debug("Loading dependency %s", form.name)
        try:
            exec(code, self.namespace)
        except Exception as error:
            return Failure(
                message=f"Cannot load dependency '{form.name}': "
                f"{describe_error(error)}",
                span=form.span,
            )
        return None

    def _run_test(self, form: Form, text: str, filename: str) -> TestResult | None:
        name = form.name or "<anonymous>"
        fragments = self._fragments(form, text, filename)
        self.registry.define(name, EntryKind.TEST, fragments, doc=form.doc)

        log.debug("Running test '%s' (%d fragment(s))", name, len(fragments))
        failures = self.executor.run_fragments(fragments)
        if not failures:
            return None
        return TestResult(test_name=name, failures=failures, span=form.span)

    def _fragments(self, form: Form, text: str, filename: str) -> Sequence[Fragment]:
        fragments: list[Fragment] = []
        for slot, statement in enumerate(form.body, start=FIRST_BODY_SLOT):
            if slot == FIRST_BODY_SLOT and form.doc is not None:
                continue
            span = form.child_span(slot)
            fragments.append(
                Fragment(
                    source=text[span.start : span.end],
                    span=span,
                    statement=statement,
                    filename=filename,
                )
            )
        return fragments
