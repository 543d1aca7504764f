"""A thread-safe tree container keyed by string paths.

Each node is either a branch (a mapping from names to child nodes) or a
leaf holding an arbitrary value.  Paths are sequences of strings; queries
and deletions accept ``"*"`` as a glob matching any single node.
"""

from __future__ import annotations

import json
import threading
from collections.abc import Callable, Sequence
from typing import Any

GLOB = "*"

Visit = Callable[[list[str], "Leaf", Any], None]


class TreeError(Exception):
    """Raised when a value cannot be added at the requested path."""


class _Branch(dict):
    """Mapping of child names to nodes; distinguishes branches from dict values."""


def _format_value(value: Any) -> str:
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if value is None:
        return "<nil>"
    return repr(value)


class Tree:
    """A tree node that is either a branch or a leaf.

    All methods are safe to call from several threads.  A visit callback
    may raise to stop a query or walk early; the exception propagates to
    the caller.
    """

    __hash__ = None  # type: ignore[assignment]

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._contents: Any = None

    @classmethod
    def _with_contents(cls, contents: Any) -> Tree:
        node = cls()
        node._contents = contents
        return node

    @classmethod
    def _new_branch(cls, path: Sequence[str], value: Any) -> Tree:
        node = cls._with_contents(value)
        for name in reversed(path):
            node = cls._with_contents(_Branch({name: node}))
        return node

    def is_branch(self) -> bool:
        """Return whether this node is a branch."""
        with self._lock:
            return isinstance(self._contents, _Branch)

    def children(self) -> dict[str, Tree] | None:
        """Return a copy of the child mapping, or None if this is not a branch."""
        with self._lock:
            if isinstance(self._contents, _Branch):
                return dict(self._contents)
            return None

    def value(self) -> Any:
        """Return the value stored in this node, or None if it is a branch."""
        with self._lock:
            if isinstance(self._contents, _Branch):
                return None
            return self._contents

    def add(self, path: Sequence[str], value: Any) -> None:
        """Store value at path, creating intermediate branches as needed."""
        path = list(path)
        with self._lock:
            if not path:
                if isinstance(self._contents, _Branch):
                    raise TreeError("attempted to add a leaf in place of a branch")
                self._contents = value
                return
            contents = self._contents
            if contents is None:
                contents = self._contents = _Branch()
            elif not isinstance(contents, _Branch):
                raise TreeError(
                    f"attempted to add value {value!r} at path {path!r} "
                    f"which is already a leaf with value {contents!r}"
                )
            child = contents.get(path[0])
            if child is None:
                contents[path[0]] = Tree._new_branch(path[1:], value)
                return
            child.add(path[1:], value)

    def get(self, path: Sequence[str]) -> Tree | None:
        """Return the node at the fully specified path, or None."""
        node: Tree = self
        for name in path:
            with node._lock:
                contents = node._contents
                child = contents.get(name) if isinstance(contents, _Branch) else None
            if child is None:
                return None
            node = child
        return node

    def get_leaf_value(self, path: Sequence[str]) -> Any:
        """Return the leaf value at path, or None if there is no leaf there."""
        node = self.get(path)
        return None if node is None else node.value()

    def get_leaf(self, path: Sequence[str]) -> Leaf | None:
        """Return a live handle to the node at path, or None."""
        node = self.get(path)
        return None if node is None else Leaf(node)

    def query(self, path: Sequence[str], visit: Visit) -> None:
        """Call visit for every leaf matching path, where nodes may be globs."""
        self._query([], list(path), visit)

    def _query(self, prefix: list[str], path: list[str], visit: Visit) -> None:
        with self._lock:
            if not path or path[0] == GLOB:
                self._enumerate(prefix, path, visit)
                return
            contents = self._contents
            if isinstance(contents, _Branch):
                child = contents.get(path[0])
                if child is not None:
                    child._query(prefix + [path[0]], path[1:], visit)

    def _enumerate(self, prefix: list[str], path: list[str], visit: Visit) -> None:
        contents = self._contents
        if not path or (len(path) == 1 and path[0] == GLOB):
            if isinstance(contents, _Branch):
                for name, child in list(contents.items()):
                    child._query(prefix + [name], [], visit)
            elif contents is not None:
                visit(list(prefix), Leaf(self), contents)
            return
        if isinstance(contents, _Branch):
            for name, child in list(contents.items()):
                child._query(prefix + [name], path[1:], visit)

    def walk(self, visit: Visit) -> None:
        """Call visit for every leaf in the tree."""
        self._walk([], visit, ordered=False)

    def walk_sorted(self, visit: Visit) -> None:
        """Call visit for every leaf, visiting names in sorted order."""
        self._walk([], visit, ordered=True)

    def _walk(self, path: list[str], visit: Visit, ordered: bool) -> None:
        with self._lock:
            contents = self._contents
            if isinstance(contents, _Branch):
                items = list(contents.items())
                if ordered:
                    items.sort(key=lambda item: item[0])
                for name, child in items:
                    child._walk(path + [name], visit, ordered)
                return
            # An empty root is the zero tree, not a leaf.
            if not path and contents is None:
                return
            visit(list(path), Leaf(self), contents)

    def walk_deleted(
        self,
        path: Sequence[str],
        condition: Callable[[Any], bool],
        callback: Callable[[Any], None],
    ) -> None:
        """Delete leaves matching path and condition, calling callback on each value."""
        with self._lock:
            remove, _ = self._internal_delete(list(path), condition, callback, False)
            if remove:
                self._contents = None

    def _internal_delete(
        self,
        subpath: list[str],
        condition: Callable[[Any], bool],
        callback: Callable[[Any], None],
        want_paths: bool,
    ) -> tuple[bool, list[list[str]]]:
        contents = self._contents
        if not subpath or subpath[0] == GLOB:
            rest = subpath[1:]
            if isinstance(contents, _Branch):
                deleted: list[list[str]] = []
                for name, child in list(contents.items()):
                    remove, leaves = child._internal_delete(
                        rest, condition, callback, want_paths
                    )
                    if want_paths:
                        deleted.extend([name, *leaf] for leaf in leaves)
                    if remove:
                        del contents[name]
                return not contents, deleted
            if condition(contents):
                callback(contents)
                return True, ([[]] if want_paths else [])
            return False, []
        if isinstance(contents, _Branch):
            child = contents.get(subpath[0])
            if child is not None:
                remove, leaves = child._internal_delete(
                    subpath[1:], condition, callback, want_paths
                )
                if want_paths:
                    leaves = [[subpath[0], *leaf] for leaf in leaves]
                if remove:
                    del contents[subpath[0]]
                return not contents, leaves
        return False, []

    def delete_conditional(
        self, subpath: Sequence[str], condition: Callable[[Any], bool]
    ) -> list[list[str]]:
        """Delete leaves at or below subpath for which condition holds.

        Ancestors left without children are removed too.  Returns the paths
        of the deleted leaves.
        """
        with self._lock:
            remove, leaves = self._internal_delete(
                list(subpath), condition, lambda _value: None, True
            )
            if remove:
                self._contents = None
            return leaves

    def delete(self, subpath: Sequence[str]) -> list[list[str]]:
        """Delete all leaves at or below subpath and return their paths."""
        return self.delete_conditional(subpath, lambda _value: True)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Tree):
            return NotImplemented
        if self is other:
            return True
        with self._lock, other._lock:
            mine, theirs = self._contents, other._contents
            if isinstance(mine, _Branch) != isinstance(theirs, _Branch):
                return False
            if isinstance(mine, _Branch):
                if mine.keys() != theirs.keys():
                    return False
                return all(mine[name] == theirs[name] for name in mine)
            return mine == theirs

    def __str__(self) -> str:
        with self._lock:
            contents = self._contents
            if isinstance(contents, _Branch):
                parts = [
                    f"{json.dumps(name, ensure_ascii=False)}: {contents[name]}"
                    for name in sorted(contents)
                ]
                return "{ " + ", ".join(parts) + " }"
            return _format_value(contents)

    def __repr__(self) -> str:
        return f"Tree({self})"


class Leaf:
    """A live handle to a leaf node; value() always returns the latest content."""

    __slots__ = ("_node",)

    def __init__(self, node: Tree) -> None:
        self._node = node

    def value(self) -> Any:
        """Return the latest value stored in this leaf."""
        with self._node._lock:
            return self._node._contents

    def update(self, val: Any) -> None:
        """Replace the value stored in this leaf."""
        with self._node._lock:
            self._node._contents = val

    def __repr__(self) -> str:
        return f"Leaf({self._node})"


def detached_leaf(val: Any) -> Leaf:
    """Return a leaf holding val that belongs to no tree."""
    return Leaf(Tree._with_contents(val))