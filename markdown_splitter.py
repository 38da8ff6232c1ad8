#!/usr/bin/env python3
"""Write one markdown file per topic.

Reads ``{topic: markdown}`` (the cleaner's output) and writes ``<topic>.md``
files shaped as ``# <topic>`` followed by the topic's markdown. Filenames are
lower-cased with unsafe characters and whitespace replaced by underscores.

Usage:

    python markdown_splitter.py cleaned_data/messages_cleaned.json [output_directory]
"""

from __future__ import annotations

import argparse
import re
import sys
from pathlib import Path
from typing import Iterable, Mapping, Optional, Set

from pipeline_common import (
    PipelineError,
    PositionalArgumentParser,
    read_json,
    require_mapping,
)

INVALID_FILENAME_CHARS_RE = re.compile(r'[<>:"/\\|?*]')
WHITESPACE_RE = re.compile(r"\s+")
UNDERSCORE_RUN_RE = re.compile(r"_{2,}")
FALLBACK_FILENAME = "topic"


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = PositionalArgumentParser(
        description="Split a topic-to-markdown JSON file into one markdown file per topic."
    )
    parser.add_argument("input_file", type=Path, help="JSON produced by zulip_cleaner.py.")
    parser.add_argument(
        "output_dir",
        type=Path,
        nargs="?",
        help="Directory for the markdown files (default: the input file's directory).",
    )
    return parser.parse_args(list(argv) if argv is not None else None)


def sanitize_filename(name: str) -> str:
    cleaned = INVALID_FILENAME_CHARS_RE.sub("_", name)
    cleaned = WHITESPACE_RE.sub("_", cleaned)
    cleaned = UNDERSCORE_RUN_RE.sub("_", cleaned)
    return cleaned.strip("_").lower()


def unique_stem(stem: str, taken: Set[str]) -> str:
    candidate = stem or FALLBACK_FILENAME
    suffix = 2
    while candidate in taken:
        candidate = f"{stem or FALLBACK_FILENAME}_{suffix}"
        suffix += 1
    taken.add(candidate)
    return candidate


def render_topic_file(topic: str, content: str) -> str:
    return f"# {topic}\n\n{content}"


def create_markdown_file(topic: str, content: str, output_dir: Path, stem: str) -> Optional[Path]:
    """Write a single topic file; returns None if the write failed."""

    destination = output_dir / f"{stem}.md"
    try:
        destination.write_text(render_topic_file(topic, content), encoding="utf-8")
    except OSError as exc:
        print(f"Error creating {destination.name}: {exc}", file=sys.stderr)
        return None
    print(f"Created: {destination.name}")
    return destination


def split_topics(topics: Mapping[str, object], output_dir: Path) -> int:
    output_dir.mkdir(parents=True, exist_ok=True)
    taken: Set[str] = set()
    created = 0
    for topic, content in topics.items():
        if not isinstance(content, str):
            raise PipelineError(f"Topic {topic!r} does not map to a markdown string")
        stem = unique_stem(sanitize_filename(topic), taken)
        if create_markdown_file(topic, content, output_dir, stem) is not None:
            created += 1
    return created


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    input_file = args.input_file.resolve()
    output_dir = args.output_dir.resolve() if args.output_dir else input_file.parent

    try:
        print(f"Reading input file: {input_file}")
        topics = require_mapping(read_json(input_file), input_file)
        print(f"Found {len(topics)} entries to split")
        created = split_topics(topics, output_dir)
    except (PipelineError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"Created {created} files in {output_dir}")
    if created < len(topics):
        print(f"Failed to write {len(topics) - created} files.", file=sys.stderr)
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
