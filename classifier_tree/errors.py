from __future__ import annotations


class TreeError(Exception):
    """Base class for rejected forest operations."""


class NotFound(TreeError, LookupError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id


class InvalidCycle(TreeError, ValueError):
    def __init__(self, node_id: str, target_id: str) -> None:
        super().__init__(f"Cannot place {node_id} under {target_id}: it would become its own ancestor.")
        self.node_id = node_id
        self.target_id = target_id


class EmptyName(TreeError, ValueError):
    def __init__(self) -> None:
        super().__init__("Name is required.")
