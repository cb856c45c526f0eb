from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable, Sequence

from .deletion import CASCADE, DeleteOutcome, DeletePlan, DeletionResolver, NodeOption
from .drag import Drop, Point, ReparentController
from .errors import EmptyName, TreeError
from .ledger import HISTORY_LIMIT, ChangeLedger
from .search import compile_query, matching_ids
from .tree import ForestStore, Node, clean_name, edges, iter_nodes, unique_name
from .view import (
    any_collapsed_from_level,
    canvas_size,
    ids_at_or_below_level,
    layout,
    levels,
    node_box,
    project,
    size_constants,
)

if TYPE_CHECKING:
    from .config import Settings

logger = logging.getLogger(__name__)

DEFAULT_ROOT_NAME = "New region"
DEFAULT_CHILD_NAME = "New item"
DEFAULT_DIMENSION_NAME = "New level"
DEFAULT_DIMENSIONS = ("Region", "City", "District", "Street", "House")
DEFAULT_GROUP_NAME = "Region"

EDIT_NODE = "node"
EDIT_DIMENSION = "dimension"
EDIT_GROUP = "group"


@dataclass
class EditSession:
    kind: str  # "node" | "dimension" | "group"
    target: str | int | None
    draft: str

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "target": self.target, "draft": self.draft}


class Editor:
    """One operator session over a classification forest.

    Each public method handles one discrete UI trigger. Structural and label
    mutations append exactly one ledger entry, and only after they succeed.
    """

    def __init__(
        self,
        forest: Iterable[Node] = (),
        dimensions: Sequence[str] = DEFAULT_DIMENSIONS,
        group_name: str = DEFAULT_GROUP_NAME,
        history_limit: int = HISTORY_LIMIT,
    ) -> None:
        self.store = ForestStore(forest)
        self.dimensions: list[str] = [clean_name(d) for d in dimensions]
        self.group_name = clean_name(group_name)
        self.collapsed: set[str] = set()
        self.selected_id: str | None = None
        self.panel_open = False
        self.edit: EditSession | None = None
        self.overlay_id: str | None = None
        self.pending_delete: DeletePlan | None = None
        self.drag = ReparentController()
        self.resolver = DeletionResolver(self.store)
        self.ledger = ChangeLedger(
            limit=history_limit,
            applied_label=self.group_name,
            applied_forest=self.store.roots,
        )

    @classmethod
    def from_settings(cls, settings: "Settings") -> "Editor":
        return cls(
            forest=settings.forest,
            dimensions=settings.dimensions,
            group_name=settings.group_name,
            history_limit=settings.history_limit,
        )

    # ---------- structure ----------

    def add_root(self, name: str | None = None) -> Node:
        node = self.store.add_root(DEFAULT_ROOT_NAME if name is None else name)
        self._select(node.id)
        self.edit = EditSession(kind=EDIT_NODE, target=node.id, draft=node.name)
        self.ledger.append(f'Added root "{node.name}"')
        return node

    def add_child(self, parent_id: str, name: str | None = None) -> Node:
        parent = self.store.get(parent_id)
        node = self.store.add_child(parent_id, DEFAULT_CHILD_NAME if name is None else name)
        self.collapsed.discard(parent_id)
        self._select(node.id)
        self.edit = EditSession(kind=EDIT_NODE, target=node.id, draft=node.name)
        self.ledger.append(f'Added child "{node.name}" to "{parent.name}"')
        return node

    def rename_node(self, node_id: str, name: str) -> Node:
        previous = self.store.get(node_id).name
        node = self.store.rename(node_id, name)
        self.ledger.append(f'Renamed item: "{previous}" → "{node.name}"')
        return node

    # ---------- dimension labels ----------

    def _check_dimension(self, index: int) -> None:
        if not 0 <= index < len(self.dimensions):
            raise TreeError(f"No level at index {index}.")

    def rename_dimension(self, index: int, name: str) -> str:
        self._check_dimension(index)
        label = clean_name(name)
        previous = self.dimensions[index]
        self.dimensions[index] = label
        self.ledger.append(f'Renamed level: "{previous}" → "{label}"')
        return label

    def insert_dimension(self, index: int, side: str = "right") -> str:
        self._check_dimension(index)
        if side not in {"left", "right"}:
            raise TreeError(f"Invalid side: {side}")
        anchor = self.dimensions[index]
        label = unique_name(DEFAULT_DIMENSION_NAME, self.dimensions)
        at = index if side == "left" else index + 1
        self.dimensions.insert(at, label)
        self.edit = EditSession(kind=EDIT_DIMENSION, target=at, draft=label)
        self.ledger.append(f'Added level {side} of "{anchor}": "{label}"')
        return label

    def rename_group(self, name: str) -> str:
        label = clean_name(name)
        previous = self.group_name
        self.group_name = label
        self.ledger.append(f'Renamed dimension group: "{previous}" → "{label}"')
        return label

    # ---------- inline editing ----------

    def start_edit_node(self, node_id: str) -> EditSession:
        node = self.store.get(node_id)
        self.edit = EditSession(kind=EDIT_NODE, target=node_id, draft=node.name)
        return self.edit

    def start_edit_dimension(self, index: int) -> EditSession:
        self._check_dimension(index)
        self.edit = EditSession(kind=EDIT_DIMENSION, target=index, draft=self.dimensions[index])
        return self.edit

    def start_edit_group(self) -> EditSession:
        self.edit = EditSession(kind=EDIT_GROUP, target=None, draft=self.group_name)
        return self.edit

    def update_draft(self, text: str) -> None:
        if self.edit is None:
            raise TreeError("Nothing is being edited.")
        self.edit.draft = text

    def commit_edit(self, draft: str | None = None) -> bool:
        """Apply the edit session. A blank draft is ignored and the session stays open."""
        if self.edit is None:
            return False
        if draft is not None:
            self.edit.draft = draft
        session = self.edit
        try:
            if session.kind == EDIT_NODE:
                self.rename_node(str(session.target), session.draft)
            elif session.kind == EDIT_DIMENSION:
                self.rename_dimension(int(session.target or 0), session.draft)
            else:
                self.rename_group(session.draft)
        except EmptyName:
            logger.debug("Ignored blank %s name", session.kind)
            return False
        self.edit = None
        return True

    def cancel_edit(self) -> None:
        self.edit = None

    # ---------- selection, hover, collapse ----------

    def _select(self, node_id: str) -> None:
        self.selected_id = node_id
        self.panel_open = True

    def select(self, node_id: str) -> None:
        self.store.get(node_id)
        self._select(node_id)

    def clear_selection(self) -> None:
        self.selected_id = None
        self.panel_open = False

    def selection_details(self) -> dict[str, Any] | None:
        if self.selected_id is None:
            return None
        path = self.store.find_path(self.selected_id)
        node = path[-1]
        level = len(path) - 1
        return {
            "id": node.id,
            "name": node.name,
            "level": level,
            "dimension": self.dimensions[level] if level < len(self.dimensions) else "",
            "path": [p.name for p in path],
            "child_count": len(node.children),
        }

    def hover(self, node_id: str | None) -> None:
        if node_id is not None:
            self.store.get(node_id)
        self.overlay_id = node_id

    def toggle_collapsed(self, node_id: str) -> bool:
        """Flip a node's collapsed flag; returns the new flag. Leaves never collapse."""
        node = self.store.get(node_id)
        if node_id in self.collapsed:
            self.collapsed.discard(node_id)
            return False
        if not node.children:
            return False
        self.collapsed.add(node_id)
        return True

    def expand(self, node_id: str) -> None:
        self.collapsed.discard(node_id)

    def collapse_to_level(self, level: int) -> None:
        self.collapsed = ids_at_or_below_level(self.store.roots, level)

    def expand_from_level(self, level: int) -> None:
        self.collapsed -= ids_at_or_below_level(self.store.roots, level)

    def toggle_level(self, level: int) -> None:
        if any_collapsed_from_level(self.store.roots, self.collapsed, level):
            self.expand_from_level(level)
        else:
            self.collapse_to_level(level)

    # ---------- drag reparenting ----------

    def start_drag(self, node_id: str, pointer: Point = (0.0, 0.0)) -> bool:
        blocked = self.edit is not None or self.pending_delete is not None
        started = self.drag.pointer_down(self.store, node_id, pointer, blocked=blocked)
        if started:
            self.overlay_id = None
            self.panel_open = False
        return started

    def drag_over(self, candidate_id: str | None, pointer: Point | None = None) -> str | None:
        return self.drag.pointer_move(self.store, candidate_id, pointer)

    def end_drag(self) -> Node | None:
        result = self.drag.pointer_up(self.store)
        if result is None:
            return None
        drop, moved = result
        self._after_move(drop, moved)
        return moved

    def _after_move(self, drop: Drop, moved: Node) -> None:
        target = self.store.get(drop.target_id)
        self.collapsed.discard(drop.target_id)
        self.selected_id = moved.id
        self.ledger.append(f'Moved "{moved.name}" under "{target.name}"')

    # ---------- deletion ----------

    def request_delete(self, node_id: str) -> DeletePlan:
        self.pending_delete = self.resolver.plan(node_id, self.dimensions)
        return self.pending_delete

    def cancel_delete(self) -> None:
        self.pending_delete = None

    def reassign_options(self, node_id: str) -> list[NodeOption]:
        return self.resolver.candidates(node_id, self.dimensions)

    def confirm_delete(self, mode: str = CASCADE, target_id: str | None = None) -> DeleteOutcome:
        if self.pending_delete is None:
            raise TreeError("No delete request is pending.")
        outcome = self.delete_node(self.pending_delete.node_id, mode, target_id)
        self.pending_delete = None
        return outcome

    def delete_node(self, node_id: str, mode: str = CASCADE, target_id: str | None = None) -> DeleteOutcome:
        outcome = self.resolver.resolve(node_id, mode, target_id)
        self._forget(outcome.removed_ids)
        if outcome.target is None:
            self.ledger.append(f'Deleted "{outcome.removed.name}" with its children')
        else:
            self.ledger.append(f'Deleted "{outcome.removed.name}", children moved to "{outcome.target.name}"')
        return outcome

    def _forget(self, removed_ids: Iterable[str]) -> None:
        removed = set(removed_ids)
        if self.selected_id in removed:
            self.clear_selection()
        if self.edit is not None and self.edit.kind == EDIT_NODE and self.edit.target in removed:
            self.edit = None
        if self.overlay_id in removed:
            self.overlay_id = None
        if self.drag.dragging_id in removed or self.drag.drop_target_id in removed:
            self.drag.cancel()
        if self.pending_delete is not None and self.pending_delete.node_id in removed:
            self.pending_delete = None
        self.collapsed -= removed

    # ---------- draft lifecycle ----------

    def is_dirty(self) -> bool:
        return self.ledger.is_dirty()

    def apply(self) -> datetime:
        return self.ledger.commit(self.group_name, self.store.roots)

    # ---------- rendering output ----------

    def search(self, query: str | None) -> list[str]:
        return matching_ids(self.store.roots, query)

    def view(self, query: str | None = None) -> dict[str, Any]:
        canonical = {n.id: n for n in iter_nodes(self.store.roots)}
        visible = project(self.store.roots, self.collapsed)
        positions = layout(visible)
        matches = compile_query(query)
        nodes = []
        for node in iter_nodes(visible):
            pos = positions[node.id]
            nodes.append(
                {
                    "id": node.id,
                    "name": node.name,
                    **pos.to_dict(),
                    "box": node_box(pos),
                    "has_children": bool(canonical[node.id].children),
                    "collapsed": node.id in self.collapsed,
                    "selected": node.id == self.selected_id,
                    "match": matches(node.name),
                }
            )
        return {
            "group_name": self.group_name,
            "dimensions": list(self.dimensions),
            "forest": self.store.records(),
            "collapsed": sorted(self.collapsed),
            "nodes": nodes,
            "edges": [list(pair) for pair in edges(visible)],
            "canvas": canvas_size(visible, positions, len(self.dimensions)),
            "sizes": size_constants(),
            "levels": levels(self.store.roots),
            "selection": self.selection_details(),
            "panel_open": self.panel_open,
            "edit": self.edit.to_dict() if self.edit else None,
            "overlay_id": self.overlay_id,
            "drag": self.drag.state.to_dict(),
            "pending_delete": self.pending_delete.to_dict() if self.pending_delete else None,
            **self.ledger.to_dict(),
        }
