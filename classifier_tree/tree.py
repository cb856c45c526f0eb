from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Iterator
from uuid import uuid4

from .errors import EmptyName, InvalidCycle, NotFound

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid4().hex


@dataclass(frozen=True)
class Node:
    id: str
    name: str
    children: tuple["Node", ...] = ()

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "name": self.name, "children": []}
        stack = [(self, out)]
        while stack:
            node, data = stack.pop()
            for child in node.children:
                child_data = {"id": child.id, "name": child.name, "children": []}
                data["children"].append(child_data)
                stack.append((child, child_data))
        return out


Forest = tuple[Node, ...]


def make_node(name: str, children: Iterable[Node] = ()) -> Node:
    return Node(id=_new_id(), name=clean_name(name), children=tuple(children))


def clean_name(name: str | None) -> str:
    cleaned = str(name or "").strip()
    if not cleaned:
        raise EmptyName()
    return cleaned


def unique_name(base: str, taken: Iterable[str]) -> str:
    """Return `base`, or `base 2`, `base 3`, ... whichever is first free."""
    taken = set(taken)
    if base not in taken:
        return base
    i = 2
    while f"{base} {i}" in taken:
        i += 1
    return f"{base} {i}"


# Walks below keep an explicit stack; none of them recurse.


def walk(forest: Iterable[Node]) -> Iterator[tuple[Node, int, Node | None]]:
    """Pre-order walk yielding `(node, level, parent)`."""
    stack: list[tuple[Node, int, Node | None]] = [(n, 0, None) for n in reversed(tuple(forest))]
    while stack:
        node, level, parent = stack.pop()
        yield node, level, parent
        stack.extend((c, level + 1, node) for c in reversed(node.children))


def iter_nodes(forest: Iterable[Node]) -> Iterator[Node]:
    """Pre-order walk over every node, in array order."""
    for node, _, _ in walk(forest):
        yield node


def flatten(forest: Iterable[Node]) -> list[Node]:
    return list(iter_nodes(forest))


def find_node(forest: Iterable[Node], node_id: str) -> Node | None:
    return next((n for n in iter_nodes(forest) if n.id == node_id), None)


def find_parent(forest: Iterable[Node], node_id: str) -> Node | None:
    for node, _, parent in walk(forest):
        if node.id == node_id:
            return parent
    return None


def path_to(forest: Iterable[Node], node_id: str) -> list[Node]:
    """Ancestor chain root -> node, or an empty list if the id is absent."""
    parents: dict[str, Node | None] = {}
    for node, _, parent in walk(forest):
        parents[node.id] = parent
        if node.id == node_id:
            chain = [node]
            while parent is not None:
                chain.append(parent)
                parent = parents[parent.id]
            chain.reverse()
            return chain
    return []


def is_descendant(forest: Iterable[Node], ancestor_id: str, candidate_id: str) -> bool:
    ancestor = find_node(forest, ancestor_id)
    if ancestor is None:
        return False
    return any(n.id == candidate_id for n in iter_nodes(ancestor.children))


def subtree_ids(node: Node) -> set[str]:
    return {n.id for n in iter_nodes([node])}


def edges(forest: Iterable[Node]) -> list[tuple[str, str]]:
    """Parent -> child id pairs for connector drawing."""
    return [(n.id, c.id) for n in iter_nodes(forest) for c in n.children]


def max_level(forest: Iterable[Node]) -> int:
    return max((level for _, level, _ in walk(forest)), default=0)


def records(forest: Iterable[Node]) -> list[dict[str, Any]]:
    """Flat pre-order rows; each names its parent instead of nesting."""
    return [
        {"id": n.id, "name": n.name, "parent_id": p.id if p is not None else None, "level": level}
        for n, level, p in walk(forest)
    ]


def _check_unique_ids(forest: Iterable[Node]) -> None:
    seen: set[str] = set()
    dupes: set[str] = set()
    for node in iter_nodes(forest):
        if node.id in seen:
            dupes.add(node.id)
        seen.add(node.id)
    if dupes:
        raise ValueError(f"Duplicate node ids: {', '.join(sorted(dupes))}")


# Path-copying helpers: untouched subtrees are shared between snapshots.


def _index_of(nodes: Forest, node_id: str) -> int:
    return next(i for i, n in enumerate(nodes) if n.id == node_id)


def _splice(roots: Forest, path: list[Node], new: Node | None) -> Forest:
    """Swap `path[-1]` for `new` (or drop it), copying each ancestor bottom-up."""
    replacement = (new,) if new is not None else ()
    for depth in range(len(path) - 1, 0, -1):
        parent = path[depth - 1]
        kids = parent.children
        i = _index_of(kids, path[depth].id)
        replacement = (replace(parent, children=kids[:i] + replacement + kids[i + 1 :]),)
    i = _index_of(roots, path[0].id)
    return roots[:i] + replacement + roots[i + 1 :]


def _remove(nodes: Forest, node_id: str) -> tuple[Forest, Node | None]:
    path = path_to(nodes, node_id)
    if not path:
        return nodes, None
    return _splice(nodes, path, None), path[-1]


def _update(nodes: Forest, node_id: str, fn: Callable[[Node], Node]) -> tuple[Forest, bool]:
    path = path_to(nodes, node_id)
    if not path:
        return nodes, False
    return _splice(nodes, path, fn(path[-1])), True


def _append_children(extra: Iterable[Node]) -> Callable[[Node], Node]:
    extra = tuple(extra)
    return lambda node: replace(node, children=node.children + extra)


class ForestStore:
    """Owns the canonical forest.

    Every mutation validates its preconditions first and then swaps in a
    new snapshot, so a failed call leaves `roots` exactly as it was.
    """

    def __init__(self, roots: Iterable[Node] = ()) -> None:
        roots = tuple(roots)
        _check_unique_ids(roots)
        self._roots: Forest = roots

    @property
    def roots(self) -> Forest:
        return self._roots

    def records(self) -> list[dict[str, Any]]:
        return records(self._roots)

    def contains(self, node_id: str) -> bool:
        return find_node(self._roots, node_id) is not None

    def get(self, node_id: str) -> Node:
        node = find_node(self._roots, node_id)
        if node is None:
            raise NotFound(node_id)
        return node

    def find_path(self, node_id: str) -> list[Node]:
        path = path_to(self._roots, node_id)
        if not path:
            raise NotFound(node_id)
        return path

    def is_descendant(self, ancestor_id: str, candidate_id: str) -> bool:
        return is_descendant(self._roots, ancestor_id, candidate_id)

    def check_placement(self, node_id: str, target_id: str) -> None:
        """Raise if `node_id` may not end up below `target_id`."""
        self.get(node_id)
        self.get(target_id)
        if target_id == node_id or self.is_descendant(node_id, target_id):
            raise InvalidCycle(node_id, target_id)

    def add_root(self, name: str) -> Node:
        base = clean_name(name)
        node = make_node(unique_name(base, (r.name for r in self._roots)))
        self._roots = self._roots + (node,)
        logger.debug("Added root %s (%s)", node.name, node.id)
        return node

    def add_child(self, parent_id: str, name: str) -> Node:
        parent = self.get(parent_id)
        base = clean_name(name)
        node = make_node(unique_name(base, (c.name for c in parent.children)))
        self._roots, _ = _update(self._roots, parent_id, _append_children([node]))
        logger.debug("Added child %s (%s) under %s", node.name, node.id, parent_id)
        return node

    def rename(self, node_id: str, new_name: str) -> Node:
        self.get(node_id)
        name = clean_name(new_name)
        self._roots, _ = _update(self._roots, node_id, lambda n: replace(n, name=name))
        logger.debug("Renamed %s to %s", node_id, name)
        return self.get(node_id)

    def delete_cascade(self, node_id: str) -> Node:
        roots, removed = _remove(self._roots, node_id)
        if removed is None:
            raise NotFound(node_id)
        self._roots = roots
        logger.debug("Deleted %s with %d descendant(s)", node_id, len(subtree_ids(removed)) - 1)
        return removed

    def reassign_and_delete(self, node_id: str, target_id: str) -> Node:
        """Remove `node_id`, appending its direct children to `target_id`.

        Deeper descendants travel with their parents; only one level is
        re-parented.
        """
        self.check_placement(node_id, target_id)
        roots, removed = _remove(self._roots, node_id)
        if removed is None:
            raise NotFound(node_id)
        roots, _ = _update(roots, target_id, _append_children(removed.children))
        self._roots = roots
        logger.debug("Deleted %s, moved %d child(ren) to %s", node_id, len(removed.children), target_id)
        return removed

    def move_as_child(self, node_id: str, target_id: str) -> Node:
        self.check_placement(node_id, target_id)
        roots, moved = _remove(self._roots, node_id)
        if moved is None:
            raise NotFound(node_id)
        roots, _ = _update(roots, target_id, _append_children([moved]))
        self._roots = roots
        logger.debug("Moved %s under %s", node_id, target_id)
        return moved
