"""Hierarchical values produced by compiling a markdown document.

A ValueTree is a list of Records; a Record holds an optional literal string and
named child ValueTrees. Repeating a heading name under the same parent appends
another Record to that name's list, so a name resolves either to one Record or
to an ordered list of them.

The Cursor addresses the Record currently being written by an index path
instead of a live reference, so the tree has a single owner.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator

from markupsafe import Markup, escape


class Record:
    """One entry of a ValueTree.

    Attributes:
        literal: The section text stored at this position, if any.
        children: Named child trees, in insertion order.
    """

    __slots__ = ("literal", "children")

    def __init__(
        self,
        literal: str | None = None,
        children: dict[str, ValueTree] | None = None,
    ):
        self.literal = literal
        self.children: dict[str, ValueTree] = children if children is not None else {}

    def __getitem__(self, key):
        """Look up a child by name, or index 0 for the record itself.

        A name whose tree holds exactly one record resolves to that record;
        any other length resolves to the tree so entries need index access.
        """
        if isinstance(key, int) and not isinstance(key, bool):
            if key == 0:
                return self
            raise IndexError(key)
        tree = self.children[key]
        if len(tree) == 1:
            return tree[0]
        return tree

    def __contains__(self, key: object) -> bool:
        return key in self.children

    def __iter__(self) -> Iterator[str]:
        return iter(self.children)

    def __len__(self) -> int:
        return len(self.children)

    def __bool__(self) -> bool:
        return self.literal is not None or bool(self.children)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self.literal == other.literal and self.children == other.children

    def __str__(self) -> str:
        if self.literal is not None:
            return self.literal
        inner = ", ".join(f"{key!r}: {value}" for key, value in self.children.items())
        return "{" + inner + "}"

    def __html__(self) -> str:
        if self.literal is not None:
            return self.literal
        return str(escape(str(self)))

    def __repr__(self) -> str:
        return f"Record(literal={self.literal!r}, children={self.children!r})"

    def get(self, key: str, default=None):
        try:
            return self[key]
        except KeyError:
            return default

    def to_python(self):
        """Return plain Python data for debugging and serialization."""
        if not self.children:
            return self.literal
        data = {key: tree.to_python() for key, tree in self.children.items()}
        if self.literal is not None:
            return {"_literal": self.literal, **data}
        return data

    def map_literals(self, func: Callable[[str], str]) -> Record:
        """Return a copy with func applied to every literal in the subtree."""
        literal = func(self.literal) if self.literal is not None else None
        children = {key: tree.map_literals(func) for key, tree in self.children.items()}
        return Record(literal, children)


class ValueTree:
    """An ordered list of Records."""

    __slots__ = ("records",)

    def __init__(self, records: list[Record] | None = None):
        self.records: list[Record] = records if records is not None else []

    def __getitem__(self, index: int) -> Record:
        if not isinstance(index, int):
            raise TypeError(f"ValueTree entries are addressed by index, not {index!r}")
        return self.records[index]

    def __iter__(self) -> Iterator[Record]:
        return iter(self.records)

    def __len__(self) -> int:
        return len(self.records)

    def __bool__(self) -> bool:
        return bool(self.records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValueTree):
            return NotImplemented
        return self.records == other.records

    def __str__(self) -> str:
        return "[" + ", ".join(str(record) for record in self.records) + "]"

    def __html__(self) -> str:
        return str(escape(str(self)))

    def __repr__(self) -> str:
        return f"ValueTree({self.records!r})"

    def append(self, record: Record) -> int:
        self.records.append(record)
        return len(self.records) - 1

    def to_python(self) -> list:
        return [record.to_python() for record in self.records]

    def map_literals(self, func: Callable[[str], str]) -> ValueTree:
        return ValueTree([record.map_literals(func) for record in self.records])


class Cursor:
    """Write position inside a ValueTree during compilation.

    The position is a stack of ``(list_index, name)`` pairs, one per open
    heading, plus the index of the current entry in the innermost list.
    """

    def __init__(self, tree: ValueTree | None = None):
        self.tree = tree if tree is not None else ValueTree([Record()])
        self._path: list[tuple[int, str]] = []
        self._index = 0

    @property
    def depth(self) -> int:
        return len(self._path)

    def current(self) -> Record:
        """Resolve the index path to the Record it addresses."""
        tree = self.tree
        for index, name in self._path:
            tree = tree[index].children[name]
        return tree[self._index]

    def step_out(self) -> None:
        if self._path:
            self._index, _ = self._path.pop()

    def truncate(self, depth: int) -> None:
        """Close every scope opened at depth >= ``depth``."""
        while len(self._path) > depth:
            self.step_out()

    def descend(self, name: str) -> None:
        """Open ``name`` under the current record and move into a new entry."""
        record = self.current()
        self._path.append((self._index, name))
        tree = record.children.get(name)
        if tree is None:
            record.children[name] = ValueTree([Record()])
            self._index = 0
        else:
            self._index = tree.append(Record())

    def set(self, literal: str) -> None:
        self.current().literal = literal

    def root(self) -> Record:
        return self.tree[0]
