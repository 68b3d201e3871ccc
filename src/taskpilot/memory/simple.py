"""Bounded conversation history attached to a task."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List


@dataclass
class MemoryRecord:
    role: str
    content: str
    metadata: Dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content, "metadata": dict(self.metadata)}


class ConversationBufferMemory:
    """Stores a bounded list of conversation records in memory."""

    def __init__(self, max_items: int = 50, records: Iterable[MemoryRecord] = ()) -> None:
        self.max_items = max_items
        self._items: List[MemoryRecord] = []
        for record in records:
            self._append(record)

    def add(self, role: str, content: str, metadata: Dict[str, str] | None = None) -> None:
        self._append(MemoryRecord(role=role, content=content, metadata=dict(metadata or {})))

    def _append(self, record: MemoryRecord) -> None:
        self._items.append(record)
        if len(self._items) > self.max_items:
            self._items = self._items[-self.max_items :]

    def dump(self) -> List[MemoryRecord]:
        return list(self._items)

    def render(self, limit: int | None = None) -> str:
        items = self._items if limit is None else self._items[-limit:]
        return "\n".join(f"{item.role}: {item.content}" for item in items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
