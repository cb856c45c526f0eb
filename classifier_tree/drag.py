from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Union

from .tree import ForestStore, Node

logger = logging.getLogger(__name__)

Point = tuple[float, float]


@dataclass(frozen=True)
class Idle:
    def to_dict(self) -> dict[str, Any]:
        return {"state": "idle"}


@dataclass(frozen=True)
class Dragging:
    dragging_id: str
    pointer: Point = (0.0, 0.0)
    drop_target_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": "dragging",
            "dragging_id": self.dragging_id,
            "pointer": list(self.pointer),
            "drop_target_id": self.drop_target_id,
        }


DragState = Union[Idle, Dragging]

IDLE = Idle()


@dataclass(frozen=True)
class Drop:
    node_id: str
    target_id: str


# Transitions are pure: they take the current session value and return the next one.


def start(state: DragState, store: ForestStore, node_id: str, pointer: Point, *, blocked: bool = False) -> DragState:
    if blocked or isinstance(state, Dragging):
        return state
    store.get(node_id)
    return Dragging(dragging_id=node_id, pointer=pointer)


def hover(state: DragState, store: ForestStore, candidate_id: str | None, pointer: Point | None = None) -> DragState:
    if not isinstance(state, Dragging):
        return state
    target: str | None = candidate_id
    if (
        candidate_id is None
        or candidate_id == state.dragging_id
        or not store.contains(candidate_id)
        or store.is_descendant(state.dragging_id, candidate_id)
    ):
        target = None
    return replace(state, pointer=pointer if pointer is not None else state.pointer, drop_target_id=target)


def release(state: DragState) -> tuple[DragState, Drop | None]:
    if isinstance(state, Dragging) and state.drop_target_id is not None:
        return IDLE, Drop(node_id=state.dragging_id, target_id=state.drop_target_id)
    return IDLE, None


class ReparentController:
    """Owns the single drag session and commits valid drops to the store."""

    def __init__(self) -> None:
        self.state: DragState = IDLE

    @property
    def active(self) -> bool:
        return isinstance(self.state, Dragging)

    @property
    def dragging_id(self) -> str | None:
        return self.state.dragging_id if isinstance(self.state, Dragging) else None

    @property
    def drop_target_id(self) -> str | None:
        return self.state.drop_target_id if isinstance(self.state, Dragging) else None

    def pointer_down(self, store: ForestStore, node_id: str, pointer: Point = (0.0, 0.0), *, blocked: bool = False) -> bool:
        before = self.state
        self.state = start(self.state, store, node_id, pointer, blocked=blocked)
        started = self.state is not before
        if not started:
            logger.debug("Drag of %s rejected", node_id)
        return started

    def pointer_move(self, store: ForestStore, candidate_id: str | None, pointer: Point | None = None) -> str | None:
        self.state = hover(self.state, store, candidate_id, pointer)
        return self.drop_target_id

    def pointer_up(self, store: ForestStore) -> tuple[Drop, Node] | None:
        """End the session; returns the drop and the moved node, or None when cancelled."""
        self.state, drop = release(self.state)
        if drop is None:
            return None
        moved = store.move_as_child(drop.node_id, drop.target_id)
        return drop, moved

    def cancel(self) -> None:
        self.state = IDLE
