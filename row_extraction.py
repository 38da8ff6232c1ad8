"""Extract topic and messages from one rendered conversation row.

Zulip groups consecutive messages of a topic into a "recipient row". Only the
first message of a same-sender run carries the sender's name, so senders are
carried forward within a row and reset for the next one.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, Protocol, Sequence, Union

from bs4 import Tag

from harvest_state import MessageRecord
from message_normalizer import normalize_message

UNKNOWN_SENDER = "Unknown Sender"


class MessageFragment(Protocol):
    def sender_label(self) -> Optional[str]:
        """Explicit sender name shown on this message, if any."""

    def content(self) -> Union[str, Tag]:
        """Rendered message body as HTML or a parsed tree."""


class ConversationRow(Protocol):
    @property
    def row_id(self) -> str:
        ...

    def expand(self) -> None:
        """Trigger every "show more" control so truncated messages render."""

    def topic_label(self) -> Optional[str]:
        ...

    def fragments(self) -> Sequence[MessageFragment]:
        ...


@dataclass(frozen=True)
class RowExtraction:
    topic: str
    records: List[MessageRecord]


def resolve_senders(labels: Sequence[Optional[str]]) -> List[str]:
    """Fill in missing sender labels from the previous message in the row."""

    senders: List[str] = []
    current = UNKNOWN_SENDER
    for label in labels:
        cleaned = (label or "").strip()
        if cleaned:
            current = cleaned
        senders.append(current)
    return senders


def extract_row(
    row: ConversationRow,
    normalize: Callable[[Union[str, Tag]], str] = normalize_message,
) -> Optional[RowExtraction]:
    row.expand()

    topic = (row.topic_label() or "").strip()
    if not topic:
        print(f"No topic found in row {row.row_id!r}; skipping.", file=sys.stderr)
        return None

    fragments = list(row.fragments())
    senders = resolve_senders([fragment.sender_label() for fragment in fragments])
    records = [
        MessageRecord(sender=sender, content=normalize(fragment.content()))
        for sender, fragment in zip(senders, fragments)
    ]
    return RowExtraction(topic=topic, records=records)
