"""Test executor: runs registered tests and groups by name."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from inline_test import assertions
from inline_test.assertions import AssertionFailure, evaluating
from inline_test.models.entry import EntryKind, Fragment
from inline_test.models.report import Failure
from inline_test.registry import CyclicGroupError, Registry, UndefinedNameError
from inline_test.syntax import deftest

log = logging.getLogger(__name__)


def default_namespace() -> dict[str, Any]:
    """Globals every test body sees: the assertion primitives and ``deftest``."""
    namespace: dict[str, Any] = {"__name__": "inline_test.session"}
    for name in assertions.__all__:
        namespace[name] = getattr(assertions, name)
    namespace["deftest"] = deftest
    return namespace


def describe_error(error: Exception) -> str:
    """Render a raised error as a failure message."""
    if isinstance(error, AssertionFailure):
        return str(error)
    return f"{type(error).__name__}: {error}"


@dataclass(frozen=True, kw_only=True)
class TestExecutor:
    """Evaluates test bodies, turning each raised error into a ``Failure``.

    Every run starts from a fresh copy of ``namespace``, so nothing assigned by
    one run is visible to the next. Execution is synchronous and has no
    timeout: a fragment that never returns blocks the run.
    """

    __test__ = False

    registry: Registry
    namespace: dict[str, Any] = field(default_factory=default_namespace)

    def run(self, name: str) -> Sequence[Failure]:
        """Run a test or group by name.

        Args:
            name: Registered test or group name

        Returns:
            Failures in evaluation order (empty on success)

        Raises:
            UndefinedNameError: If ``name`` is not defined
            CyclicGroupError: If a group contains itself

        """
        return self._run(name, ())

    def _run(self, name: str, active: tuple[str, ...]) -> list[Failure]:
        entry = self.registry.lookup(name)
        if entry is None:
            raise UndefinedNameError(name)
        if name in active:
            chain = " -> ".join((*active, name))
            raise CyclicGroupError(f"Group cycle detected: {chain}")

        if entry.kind is EntryKind.GROUP:
            log.debug("Running group '%s' (%d member(s))", name, len(entry.body))
            failures: list[Failure] = []
            for member in entry.body:
                failures.extend(self._run(str(member), (*active, name)))
            return failures

        log.debug("Running test '%s' (%d fragment(s))", name, len(entry.body))
        return self.run_fragments([f for f in entry.body if isinstance(f, Fragment)])

    def run_fragments(
        self,
        fragments: Sequence[Fragment],
        namespace: Mapping[str, Any] | None = None,
    ) -> list[Failure]:
        """Evaluate fragments in order, collecting one failure per raising fragment."""
        scope = dict(self.namespace if namespace is None else namespace)
        failures: list[Failure] = []
        for fragment in fragments:
            if (failure := self.evaluate(fragment, scope)) is not None:
                failures.append(failure)
        return failures

    def evaluate(self, fragment: Fragment, scope: dict[str, Any]) -> Failure | None:
        """Evaluate one fragment in ``scope``; return its failure, if any."""
        with evaluating(fragment):
            try:
                if fragment.function is not None:
                    fragment.function()
                else:
                    exec(fragment.compile(), scope)
            except Exception as error:
                log.debug("Fragment failed: %s: %s", fragment.source, error)
                return Failure(message=describe_error(error), span=fragment.span)
        return None
