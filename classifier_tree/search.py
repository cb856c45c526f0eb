from __future__ import annotations

import re
from typing import Callable, Iterable

from .tree import Node, iter_nodes

Matcher = Callable[[str], bool]


def _match_nothing(name: str) -> bool:
    return False


def compile_query(query: str | None) -> Matcher:
    """Compile free text into a literal, case-insensitive name predicate.

    A blank query matches nothing: it drives highlighting, not filtering.
    """
    text = (query or "").strip()
    if not text:
        return _match_nothing
    pattern = re.compile(re.escape(text), re.IGNORECASE)
    return lambda name: pattern.search(name or "") is not None


def matching_ids(forest: Iterable[Node], query: str | None) -> list[str]:
    matches = compile_query(query)
    return [n.id for n in iter_nodes(forest) if matches(n.name)]
