#!/usr/bin/env python3
"""Collapse harvested Zulip topics into one markdown blob each.

Reads the scraper output (``{topic: [{"sender": ..., "content": ...}]}``),
merges consecutive messages from the same sender, and writes
``{topic: "**sender:** content\\n\\n**sender:** content"}``.

Usage:

    python zulip_cleaner.py data/messages.json cleaned_data/messages_cleaned.json
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from harvest_state import MessageRecord
from pipeline_common import (
    PipelineError,
    PositionalArgumentParser,
    read_json,
    require_mapping,
    write_json,
)

MESSAGE_SEPARATOR = "\n\n"


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = PositionalArgumentParser(
        description="Collapse each topic of a Zulip harvest into a markdown blob."
    )
    parser.add_argument("input_file", type=Path, help="Harvest JSON from zulip_scraper.py.")
    parser.add_argument("output_file", type=Path, help="Destination JSON file.")
    return parser.parse_args(list(argv) if argv is not None else None)


def load_messages(topic: str, raw_messages: Any) -> List[MessageRecord]:
    if not isinstance(raw_messages, list):
        raise PipelineError(f"Topic {topic!r} does not hold a list of messages")
    records: List[MessageRecord] = []
    for entry in raw_messages:
        if not isinstance(entry, Mapping) or "sender" not in entry or "content" not in entry:
            raise PipelineError(
                f"Topic {topic!r} contains a message without sender/content: {entry!r}"
            )
        records.append(MessageRecord(sender=str(entry["sender"]), content=str(entry["content"])))
    return records


def collapse_consecutive_messages(messages: Sequence[MessageRecord]) -> List[MessageRecord]:
    """Join runs of messages from the same sender, separated by a blank line."""

    collapsed: List[MessageRecord] = []
    for message in messages:
        if collapsed and collapsed[-1].sender == message.sender:
            previous = collapsed[-1]
            collapsed[-1] = MessageRecord(
                sender=previous.sender,
                content=previous.content + MESSAGE_SEPARATOR + message.content,
            )
        else:
            collapsed.append(message)
    return collapsed


def messages_to_markdown(messages: Sequence[MessageRecord]) -> str:
    return MESSAGE_SEPARATOR.join(
        f"**{message.sender}:** {message.content}"
        for message in collapse_consecutive_messages(messages)
    )


def clean_harvest(harvest: Mapping[str, Any]) -> Dict[str, str]:
    cleaned: Dict[str, str] = {}
    for topic, raw_messages in harvest.items():
        messages = load_messages(topic, raw_messages)
        print(f'Processing topic: "{topic}" ({len(messages)} messages)')
        cleaned[topic] = messages_to_markdown(messages)
    return cleaned


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    input_file = args.input_file.resolve()
    output_file = args.output_file.resolve()

    try:
        print(f"Reading input file: {input_file}")
        harvest = require_mapping(read_json(input_file), input_file)
        print(f"Found {len(harvest)} topics")
        cleaned = clean_harvest(harvest)
        print(f"Writing output file: {output_file}")
        write_json(output_file, cleaned)
    except (PipelineError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Cleaned {len(cleaned)} topics into {output_file}")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
