#!/usr/bin/env python3
"""Compact a directory of markdown files into N grouped files.

Files are sorted by name and dealt round-robin into N groups, so group sizes
differ by at most one. Each group file lists its members in order, every member
preceded by a ``<!-- Source: name.md -->`` comment and separated by a
horizontal rule. Groups are named ``group_<i>_of_<N>_<count>_files.md``.

Usage:

    python markdown_compactor.py markdown_files/ compacted/ 5
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, TypeVar

from pipeline_common import PipelineError, PositionalArgumentParser

FILE_SEPARATOR = "\n\n---\n\n"

T = TypeVar("T")


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        number = 0
    if number < 1:
        raise argparse.ArgumentTypeError(f"N must be a positive integer, got {value!r}")
    return number


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = PositionalArgumentParser(
        description="Combine markdown files into N roughly equal groups."
    )
    parser.add_argument("input_dir", type=Path, help="Directory containing markdown files.")
    parser.add_argument("output_dir", type=Path, help="Directory for the group files.")
    parser.add_argument("group_count", type=positive_int, help="Number of groups to create.")
    return parser.parse_args(list(argv) if argv is not None else None)


def get_markdown_files(directory: Path) -> List[Path]:
    if not directory.is_dir():
        raise PipelineError(f"Input directory does not exist: {directory}")
    try:
        entries = list(directory.iterdir())
    except OSError as exc:
        raise PipelineError(f"Cannot read input directory: {exc}") from exc
    return sorted(
        (entry for entry in entries if entry.is_file() and entry.suffix.lower() == ".md"),
        key=lambda entry: entry.name,
    )


def distribute_into_groups(items: Sequence[T], group_count: int) -> List[List[T]]:
    """Deal ``items`` round-robin into ``group_count`` groups.

    When there are at least as many groups as items, each item gets its own
    group and no empty groups are returned.
    """

    if group_count >= len(items):
        return [[item] for item in items]

    groups: List[List[T]] = [[] for _ in range(group_count)]
    for index, item in enumerate(items):
        groups[index % group_count].append(item)
    return groups


def combine_markdown_files(paths: Sequence[Path]) -> str:
    blocks: List[str] = []
    for path in paths:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            print(f"Warning: Could not read file {path}: {exc}", file=sys.stderr)
            continue
        blocks.append(f"<!-- Source: {path.stem}.md -->")
        blocks.append(content.strip())
    return FILE_SEPARATOR.join(blocks)


def group_filename(group_index: int, total_groups: int, file_count: int) -> str:
    return f"group_{group_index + 1}_of_{total_groups}_{file_count}_files.md"


def compact_markdown_files(input_dir: Path, output_dir: Path, group_count: int) -> List[Path]:
    markdown_files = get_markdown_files(input_dir)
    if not markdown_files:
        print("Warning: No markdown files found in input directory", file=sys.stderr)
        return []

    print(f"Found {len(markdown_files)} markdown files")
    output_dir.mkdir(parents=True, exist_ok=True)

    groups = distribute_into_groups(markdown_files, group_count)
    written: List[Path] = []
    for index, group in enumerate(groups):
        destination = output_dir / group_filename(index, len(groups), len(group))
        destination.write_text(combine_markdown_files(group), encoding="utf-8")
        print(f"  Group {index + 1}: {len(group)} files -> {destination.name}")
        written.append(destination)
    return written


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    input_dir = args.input_dir.resolve()
    output_dir = args.output_dir.resolve()

    try:
        written = compact_markdown_files(input_dir, output_dir, args.group_count)
    except (PipelineError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if written:
        print(f"Created {len(written)} group files in {output_dir}")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
