"""Helpers shared by the offline pipeline stages (cleaner, splitter, compactor)."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, NoReturn


class PipelineError(RuntimeError):
    """Raised when a pipeline stage encounters an unrecoverable issue."""


class PositionalArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits with status 1 and the usage on bad input."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(1, f"Error: {message}\n")


def read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise PipelineError(f"Input file does not exist: {path}") from exc
    except IsADirectoryError as exc:
        raise PipelineError(f"Expected a file but found a directory: {path}") from exc
    except json.JSONDecodeError as exc:
        raise PipelineError(f"Invalid JSON in {path}: {exc}") from exc


def write_json(path: Path, content: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(content, indent=2, ensure_ascii=False), encoding="utf-8")


def require_mapping(data: Any, path: Path) -> dict:
    if not isinstance(data, dict):
        raise PipelineError(f"Expected a JSON object keyed by topic in {path}")
    return data
