"""Bounded filesystem readers shared by the platform scanners."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Iterator

from agentwatch.date_utils import modified_ms, to_epoch_int


def path_exists(path: Path) -> bool:
    """`Path.exists` that reports an unreachable path as missing."""
    try:
        return path.exists()
    except OSError:
        return False


def collect_files(root: Path, suffix: str, max_files: int) -> list[Path]:
    """Return up to `max_files` files under `root`, newest modification first.

    Unreadable directories are skipped; a missing root yields nothing.
    """
    wanted = suffix.lower()
    found: list[Path] = []
    for dirpath, _dirnames, filenames in os.walk(root, onerror=lambda _exc: None):
        for name in filenames:
            if name.lower().endswith(wanted):
                found.append(Path(dirpath) / name)

    found.sort(key=modified_ms, reverse=True)
    return found[:max_files]


def safe_read_json(path: Path) -> dict[str, Any] | None:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError, RecursionError):
        return None
    return raw if isinstance(raw, dict) else None


def read_tail(path: Path, max_bytes: int) -> str:
    """Read at most the final `max_bytes` of a file, decoding leniently."""
    with path.open("rb") as handle:
        handle.seek(0, os.SEEK_END)
        size = handle.tell()
        window = min(size, max_bytes)
        if window == 0:
            return ""
        handle.seek(size - window)
        data = handle.read(window)
    return data.decode("utf-8", errors="replace")


def iter_json_lines(text: str) -> Iterator[dict[str, Any]]:
    """Yield each line that parses as a JSON object; skip everything else."""
    for line in text.split("\n"):
        trimmed = line.strip()
        if not trimmed:
            continue
        try:
            record = json.loads(trimmed)
        except (ValueError, RecursionError):
            continue
        if isinstance(record, dict):
            yield record


def as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def string_at(value: Any, *path: str) -> str | None:
    current = value
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current if isinstance(current, str) else None


def number_at(value: Any, *path: str) -> int | None:
    current = value
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return to_epoch_int(current)


def first_string(value: Any, *keys: str) -> str | None:
    """First top-level key holding a non-empty string."""
    for key in keys:
        found = string_at(value, key)
        if found:
            return found
    return None
