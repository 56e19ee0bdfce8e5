"""Registry of named tests and groups."""

import logging
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field

from inline_test.models.entry import EntryKind, Fragment, TestEntry

log = logging.getLogger(__name__)

BodyItem = Fragment | str | Callable[[], object]


class DefinitionError(Exception):
    """Raised for misuse of the registry by a test script."""


class UndefinedNameError(DefinitionError, KeyError):
    """Raised when a name does not resolve in the registry."""

    def __init__(self, name: str, message: str | None = None) -> None:
        super().__init__(message or f"Undefined test or group: '{name}'")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class CyclicGroupError(DefinitionError):
    """Raised when running a group that ends up containing itself."""


@dataclass(kw_only=True)
class Registry:
    """Mapping from test/group name to its definition.

    Redefining a name replaces its entry in place. Access is not synchronized;
    callers sharing a registry between threads serialize access themselves.
    """

    _entries: dict[str, TestEntry] = field(default_factory=dict, repr=False)

    def define(
        self,
        name: str,
        kind: EntryKind,
        body: Sequence[BodyItem],
        *,
        doc: str | None = None,
    ) -> str:
        """Define or redefine a test or group.

        Args:
            name: Entry name, unique within the registry
            kind: Whether the body holds fragments or member names
            body: Test fragments (sources, fragments or callables) or group
                member names
            doc: Optional description shown when listing entries

        Returns:
            The defined name

        Raises:
            UndefinedNameError: If a group member is not defined

        """
        if kind is EntryKind.GROUP:
            return self.define_group(name, [str(member) for member in body], doc=doc)

        fragments = tuple(Fragment.of(item) for item in body)
        self._store(TestEntry(name=name, kind=kind, body=fragments, doc=doc))
        return name

    def define_group(
        self, name: str, members: Sequence[str], *, doc: str | None = None
    ) -> str:
        """Define a group; every member must already be defined."""
        for member in members:
            if member not in self._entries:
                raise UndefinedNameError(
                    member, f"Group '{name}' references undefined name '{member}'"
                )

        self._store(
            TestEntry(name=name, kind=EntryKind.GROUP, body=tuple(members), doc=doc)
        )
        return name

    def lookup(self, name: str) -> TestEntry | None:
        """Return the entry defined under ``name``, or None."""
        return self._entries.get(name)

    def clear(self) -> None:
        """Forget every entry."""
        log.debug("Clearing %d registry entries", len(self._entries))
        self._entries.clear()

    def names(self) -> Sequence[str]:
        """Defined names in definition order."""
        return list(self._entries)

    def _store(self, entry: TestEntry) -> None:
        action = "Redefining" if entry.name in self._entries else "Defining"
        log.debug("%s %s '%s'", action, entry.kind.value, entry.name)
        self._entries[entry.name] = entry

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[TestEntry]:
        return iter(list(self._entries.values()))
