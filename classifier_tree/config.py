from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ruamel.yaml import YAML
from ruamel.yaml.comments import CommentedMap, CommentedSeq
from ruamel.yaml.error import YAMLError

from .editor import DEFAULT_DIMENSIONS, DEFAULT_GROUP_NAME
from .ledger import HISTORY_LIMIT
from .tree import Node, make_node

yaml = YAML()
yaml.preserve_quotes = True

CONFIG_FILENAME = "classifier_tree.yml"

# Nav-style seed: a string is a leaf, a one-key mapping is a node with children.
DEFAULT_FOREST: list[Any] = [
    {
        "Central": [
            {
                "Moscow": [
                    {"Khimki": [{"Yellow": ["22"]}, "Red"]},
                    "Garden Ring",
                ]
            },
            "Nizhny Novgorod",
            "Tver",
        ]
    },
    "North-West",
]


@dataclass
class Settings:
    group_name: str = DEFAULT_GROUP_NAME
    dimensions: list[str] = field(default_factory=lambda: list(DEFAULT_DIMENSIONS))
    history_limit: int = HISTORY_LIMIT
    forest: list[Node] = field(default_factory=list)
    log_level: str = "INFO"
    path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "config_path": str(self.path) if self.path else None,
            "group_name": self.group_name,
            "dimensions": list(self.dimensions),
            "history_limit": self.history_limit,
            "log_level": self.log_level,
        }


def config_path() -> Path:
    """Resolve the seed file path, honoring an optional environment override."""
    env = os.environ.get("CLASSIFIER_TREE_CONFIG")
    if env:
        p = Path(env)
        return p if p.is_absolute() else Path.cwd() / p
    return Path.cwd() / CONFIG_FILENAME


def _load_yaml(path: Path) -> CommentedMap:
    if not path.exists():
        return CommentedMap()
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.load(handle) or CommentedMap()
    except YAMLError as exc:
        raise ValueError(f"Failed to read {path.name}: {exc}") from exc
    if not isinstance(data, CommentedMap):
        raise TypeError(f"{path.name} must contain a mapping at the top level.")
    return data


def import_forest(items: Any) -> list[Node]:
    nodes: list[Node] = []
    if items is None:
        return nodes
    if not isinstance(items, (list, CommentedSeq)):
        raise ValueError("`forest` must be a list.")
    for entry in items:
        if isinstance(entry, (dict, CommentedMap)):
            pairs = list(entry.items())
            if len(pairs) != 1:
                raise ValueError("Each forest mapping must have exactly one name.")
            name, value = pairs[0]
            title = str(name).strip()
            if not title:
                raise ValueError("Node names must not be blank.")
            nodes.append(make_node(title, import_forest(value)))
            continue
        if entry is None or not str(entry).strip():
            raise ValueError("Node names must not be blank.")
        nodes.append(make_node(str(entry)))
    return nodes


def _string_list(value: Any, key: str) -> list[str]:
    if not isinstance(value, (list, CommentedSeq)):
        raise ValueError(f"`{key}` must be a list.")
    cleaned = [str(v).strip() for v in value]
    if not cleaned or any(not v for v in cleaned):
        raise ValueError(f"`{key}` must hold non-blank names.")
    return cleaned


def load_settings(path: Path | None = None) -> Settings:
    path = path or config_path()
    data = _load_yaml(path)
    settings = Settings(path=path if path.exists() else None)
    settings.log_level = os.environ.get("CLASSIFIER_TREE_LOG_LEVEL", settings.log_level).upper()

    group = data.get("group_name")
    if group is not None:
        if not str(group).strip():
            raise ValueError("`group_name` must not be blank.")
        settings.group_name = str(group).strip()
    if data.get("dimensions") is not None:
        settings.dimensions = _string_list(data["dimensions"], "dimensions")
    limit = data.get("history_limit")
    if limit is not None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValueError("`history_limit` must be a positive integer.")
        settings.history_limit = limit
    settings.forest = import_forest(data["forest"] if "forest" in data else DEFAULT_FOREST)
    return settings
