from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from .errors import TreeError
from .tree import ForestStore, Node, subtree_ids, walk

CASCADE = "cascade"
REASSIGN = "reassign"
MODES = {CASCADE, REASSIGN}


@dataclass(frozen=True)
class NodeOption:
    id: str
    label: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "label": self.label}


@dataclass(frozen=True)
class DeletePlan:
    node_id: str
    name: str
    has_children: bool
    options: tuple[NodeOption, ...]

    @property
    def modes(self) -> list[str]:
        return [CASCADE, REASSIGN] if self.has_children else [CASCADE]

    def to_dict(self) -> dict[str, Any]:
        return {
            "node_id": self.node_id,
            "name": self.name,
            "has_children": self.has_children,
            "modes": self.modes,
            "options": [o.to_dict() for o in self.options],
        }


@dataclass(frozen=True)
class DeleteOutcome:
    mode: str
    removed: Node
    removed_ids: frozenset[str]
    target: Node | None = None


def option_label(name: str, path_names: Sequence[str], dimensions: Sequence[str], level: int | None) -> str:
    dim = dimensions[level] if level is not None and 0 <= level < len(dimensions) else ""
    prefix = f"{dim}: " if dim else ""
    return f"{prefix}{name} — {' → '.join(path_names)}"


class DeletionResolver:
    def __init__(self, store: ForestStore) -> None:
        self.store = store

    def candidates(self, node_id: str, dimensions: Sequence[str]) -> list[NodeOption]:
        """Every node that may adopt the children of `node_id`."""
        excluded = subtree_ids(self.store.get(node_id))
        names: dict[str, tuple[str, ...]] = {}
        options: list[NodeOption] = []
        for n, level, parent in walk(self.store.roots):
            path = (names[parent.id] if parent is not None else ()) + (n.name,)
            names[n.id] = path
            if n.id not in excluded:
                options.append(NodeOption(id=n.id, label=option_label(n.name, path, dimensions, level)))
        return options

    def plan(self, node_id: str, dimensions: Sequence[str]) -> DeletePlan:
        node = self.store.get(node_id)
        has_children = bool(node.children)
        options = tuple(self.candidates(node_id, dimensions)) if has_children else ()
        return DeletePlan(node_id=node.id, name=node.name, has_children=has_children, options=options)

    def resolve(self, node_id: str, mode: str, target_id: str | None = None) -> DeleteOutcome:
        if mode not in MODES:
            raise TreeError(f"Invalid delete mode: {mode}")
        node = self.store.get(node_id)
        if mode == CASCADE:
            removed = self.store.delete_cascade(node_id)
            return DeleteOutcome(mode=CASCADE, removed=removed, removed_ids=frozenset(subtree_ids(removed)))
        if not node.children:
            raise TreeError("Only a node with children can hand them over.")
        if not target_id:
            raise TreeError("A reassignment target is required.")
        removed = self.store.reassign_and_delete(node_id, target_id)
        return DeleteOutcome(
            mode=REASSIGN,
            removed=removed,
            removed_ids=frozenset({removed.id}),
            target=self.store.get(target_id),
        )
