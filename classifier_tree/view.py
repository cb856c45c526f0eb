from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Iterable, Sequence

from .tree import Forest, Node, max_level, walk

# Fixed sizes the renderer places nodes with.
COL_W = 220
ROW_H = 56
NODE_W = 190
NODE_H = 36
LEFT_PAD = 12
TOP_PAD = 44
RIGHT_MARGIN = 240
BOTTOM_MARGIN = 140


@dataclass(frozen=True)
class Position:
    level: int
    y: float

    def to_dict(self) -> dict[str, Any]:
        return {"level": self.level, "y": self.y}


def project(forest: Iterable[Node], collapsed_ids: Iterable[str]) -> Forest:
    """Copy of `forest` with the children of every collapsed node pruned."""
    forest = tuple(forest)
    collapsed = set(collapsed_ids)
    order: list[Node] = []
    stack = list(reversed(forest))
    while stack:
        node = stack.pop()
        order.append(node)
        if node.id not in collapsed:
            stack.extend(reversed(node.children))
    # Reverse pre-order reaches every child before its parent.
    visible: dict[str, Node] = {}
    for node in reversed(order):
        if node.id in collapsed:
            visible[node.id] = replace(node, children=())
        else:
            visible[node.id] = replace(node, children=tuple(visible[c.id] for c in node.children))
    return tuple(visible[n.id] for n in forest)


def layout(forest: Iterable[Node]) -> dict[str, Position]:
    """Tidy layout: leaves take consecutive rows, parents sit at their children's mean."""
    order = list(walk(forest))
    ys: dict[str, float] = {}
    next_leaf = 0
    for node, _, _ in order:
        if not node.children:
            ys[node.id] = next_leaf
            next_leaf += 1
    for node, _, _ in reversed(order):
        if node.children:
            ys[node.id] = sum(ys[c.id] for c in node.children) / len(node.children)
    return {node.id: Position(level=level, y=ys[node.id]) for node, level, _ in order}


def node_box(pos: Position) -> dict[str, float]:
    return {
        "left": LEFT_PAD + pos.level * COL_W,
        "top": TOP_PAD + pos.y * ROW_H,
        "width": NODE_W,
        "height": NODE_H,
    }


def canvas_size(forest: Sequence[Node], positions: dict[str, Position], dimension_count: int) -> dict[str, float]:
    depth = max_level(forest)
    max_y = max((p.y for p in positions.values()), default=0)
    return {
        "width": max(depth + 1, dimension_count) * COL_W + RIGHT_MARGIN,
        "height": TOP_PAD + (max_y + 1) * ROW_H + BOTTOM_MARGIN,
    }


def size_constants() -> dict[str, int]:
    return {
        "col_w": COL_W,
        "row_h": ROW_H,
        "node_w": NODE_W,
        "node_h": NODE_H,
        "left_pad": LEFT_PAD,
        "top_pad": TOP_PAD,
    }


def ids_at_or_below_level(forest: Iterable[Node], level: int) -> set[str]:
    """Ids of every node whose depth is `level` or deeper."""
    return {node.id for node, depth, _ in walk(forest) if depth >= level}


def levels(forest: Iterable[Node]) -> dict[str, int]:
    return {node.id: level for node, level, _ in walk(forest)}


def any_collapsed_from_level(forest: Iterable[Node], collapsed_ids: Iterable[str], level: int) -> bool:
    deep = ids_at_or_below_level(forest, level)
    return any(node_id in deep for node_id in collapsed_ids)

