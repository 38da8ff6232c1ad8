"""Accumulated result of a harvest session.

``HarvestState`` maps each topic to the messages discovered for it, in the
order they were first seen. Records are append-only and exact duplicates
(same topic, sender and content) are dropped, so repeated extraction passes
over the same rendered rows converge instead of growing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set


@dataclass(frozen=True)
class MessageRecord:
    """A single message as exported: who sent it and its markdown content."""

    sender: str
    content: str

    def as_dict(self) -> Dict[str, str]:
        return {"sender": self.sender, "content": self.content}


@dataclass(frozen=True)
class MergeResult:
    added: int
    dropped: int


@dataclass
class HarvestState:
    """Mutable harvest state owned by a single driver loop."""

    result_by_topic: Dict[str, List[MessageRecord]] = field(default_factory=dict)
    seen_row_ids: Set[str] = field(default_factory=set)
    last_terminal_row_id: Optional[str] = None
    duplicates_dropped: int = 0
    frozen: bool = False
    # Per-topic lookup mirroring result_by_topic for constant-time dedup.
    _index: Dict[str, Set[MessageRecord]] = field(
        default_factory=dict, repr=False, compare=False
    )

    def merge(self, topic: str, records: Iterable[MessageRecord]) -> MergeResult:
        """Append unseen records to ``topic`` and drop exact duplicates."""

        self._ensure_mutable()
        messages = self.result_by_topic.setdefault(topic, [])
        known = self._index.setdefault(topic, set(messages))

        added = 0
        dropped = 0
        for record in records:
            if record in known:
                dropped += 1
                continue
            known.add(record)
            messages.append(record)
            added += 1

        self.duplicates_dropped += dropped
        return MergeResult(added=added, dropped=dropped)

    def mark_seen(self, row_ids: Iterable[str]) -> None:
        self._ensure_mutable()
        self.seen_row_ids.update(row_ids)

    def is_seen(self, row_id: str) -> bool:
        return row_id in self.seen_row_ids

    def freeze(self) -> None:
        self.frozen = True

    def message_count(self) -> int:
        return sum(len(messages) for messages in self.result_by_topic.values())

    def as_dict(self) -> Dict[str, List[Dict[str, str]]]:
        """Return the export mapping ``{topic: [{sender, content}, ...]}``."""

        return {
            topic: [record.as_dict() for record in messages]
            for topic, messages in self.result_by_topic.items()
        }

    def _ensure_mutable(self) -> None:
        if self.frozen:
            raise RuntimeError("Harvest state is frozen; the session has terminated.")
