from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import uuid4

from .tree import Forest

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 80


@dataclass(frozen=True)
class ChangeEntry:
    id: str
    at: datetime
    summary: str

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "at": self.at.isoformat(timespec="seconds"), "summary": self.summary}


@dataclass
class ChangeLedger:
    """Draft history: human readable summaries of every uncommitted edit."""

    limit: int = HISTORY_LIMIT
    applied_at: datetime = field(default_factory=datetime.now)
    applied_label: str = ""
    applied_forest: Forest = ()
    _entries: list[ChangeEntry] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.limit < 1:
            raise ValueError("History limit must be positive.")

    @property
    def entries(self) -> list[ChangeEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, summary: str) -> ChangeEntry:
        entry = ChangeEntry(id=uuid4().hex[:8], at=datetime.now(), summary=summary)
        self._entries.append(entry)
        if len(self._entries) > self.limit:
            del self._entries[: len(self._entries) - self.limit]
        logger.debug("Change recorded: %s", summary)
        return entry

    def is_dirty(self) -> bool:
        return bool(self._entries)

    def commit(self, label: str, forest: Forest = ()) -> datetime:
        self.applied_at = datetime.now()
        self.applied_label = label
        self.applied_forest = forest
        dropped = len(self._entries)
        self._entries = []
        logger.info("Applied %d change(s) as %r", dropped, label)
        return self.applied_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "changes": [e.to_dict() for e in self._entries],
            "dirty": self.is_dirty(),
            "applied_at": self.applied_at.isoformat(timespec="seconds"),
            "applied_label": self.applied_label,
        }
