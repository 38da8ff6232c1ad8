"""Scripted stand-ins for the Zulip page used across the harvest tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence


@dataclass
class FakeFragment:
    sender: Optional[str]
    html: str

    def sender_label(self) -> Optional[str]:
        return self.sender

    def content(self) -> str:
        return self.html


@dataclass
class FakeRow:
    row_id: str
    topic: Optional[str]
    messages: List[FakeFragment] = field(default_factory=list)
    expand_calls: int = 0
    fragment_reads: int = 0

    def expand(self) -> None:
        self.expand_calls += 1

    def topic_label(self) -> Optional[str]:
        return self.topic

    def fragments(self) -> Sequence[FakeFragment]:
        self.fragment_reads += 1
        return list(self.messages)


class FakeHost:
    """Serves one scripted batch of rows per pagination trigger."""

    def __init__(self, batches: Sequence[Sequence[FakeRow]], sentinel: bool = True) -> None:
        self.batches = [list(batch) for batch in batches]
        self.sentinel = sentinel
        self.index = 0
        self.row_reads = 0
        self.jiggles: List[float] = []
        self.sentinel_scrolls = 0
        self.waits: List[float] = []

    def has_sentinel(self) -> bool:
        return self.sentinel

    def current_rows(self) -> List[FakeRow]:
        self.row_reads += 1
        if not self.batches:
            return []
        return list(self.batches[self.index])

    def jiggle_scroll(self, fraction: float) -> None:
        self.jiggles.append(fraction)

    def scroll_sentinel_into_view(self) -> None:
        self.sentinel_scrolls += 1
        self.index = min(self.index + 1, len(self.batches) - 1)

    def wait(self, seconds: float) -> None:
        self.waits.append(seconds)


def make_row(row_id: str, topic: Optional[str], *messages) -> FakeRow:
    return FakeRow(
        row_id=row_id,
        topic=topic,
        messages=[FakeFragment(sender, html) for sender, html in messages],
    )


