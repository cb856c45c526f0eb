from __future__ import annotations

from .errors import EmptyName, InvalidCycle, NotFound, TreeError
from .tree import ForestStore, Node

__all__ = [
    "EmptyName",
    "ForestStore",
    "InvalidCycle",
    "Node",
    "NotFound",
    "TreeError",
]
