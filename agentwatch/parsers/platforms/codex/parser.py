"""Tail-read Codex rollout logs (`$CODEX_HOME/sessions/**/*.jsonl`)."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from agentwatch import config
from agentwatch.agent_registry import AgentRegistry
from agentwatch.date_utils import iso_to_epoch_ms, modified_ms, normalize_epoch_ms, to_epoch_int
from agentwatch.display import agent_key
from agentwatch.models import MonitorEventView
from agentwatch.observability import record_parse_failure
from agentwatch.parsers.classifier import classify_record
from agentwatch.parsers.fs_utils import as_dict, collect_files, first_string, iter_json_lines, path_exists, read_tail

logger = logging.getLogger("agentwatch.scanner")

SOURCE = "codex"

_UUID_SUFFIX_PATTERN = re.compile(
    r"([0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})$"
)
_CWD_TAG_PATTERN = re.compile(r"<cwd>(.*?)</cwd>", re.DOTALL)


def parse_session_from_filename(path: Path) -> str | None:
    match = _UUID_SUFFIX_PATTERN.search(path.stem)
    return match.group(1) if match else None


def record_timestamp(record: dict[str, Any], payload: dict[str, Any], fallback_ts: int) -> int:
    """Numeric ts/timestamp fields first, then ISO timestamps, then the file mtime."""
    for candidate in (record.get("ts"), record.get("timestamp"), payload.get("ts"), payload.get("timestamp")):
        numeric = to_epoch_int(candidate)
        if numeric is not None:
            return normalize_epoch_ms(numeric)
    for candidate in (record.get("timestamp"), payload.get("timestamp")):
        parsed = iso_to_epoch_ms(candidate)
        if parsed is not None:
            return parsed
    return fallback_ts


def _extract_tagged_cwd(text: str | None) -> str | None:
    if not text:
        return None
    match = _CWD_TAG_PATTERN.search(text)
    if not match:
        return None
    return match.group(1).strip() or None


def extract_repo_path(record: dict[str, Any], payload: dict[str, Any]) -> str | None:
    return (
        first_string(payload, "cwd")
        or first_string(record, "cwd")
        or _extract_tagged_cwd(first_string(record, "message") or first_string(payload, "message"))
    )


def extract_agent_name(kind: str, payload_type: str, record: dict[str, Any], payload: dict[str, Any]) -> str | None:
    """A user prompt's first line doubles as the session's title."""
    if kind != "event_msg" or payload_type != "user_message":
        return None
    message = first_string(payload, "message") or first_string(record, "message")
    if not message:
        return None
    lines = message.splitlines()
    first_line = lines[0].strip() if lines else ""
    return first_line or None


def _scan_file(registry: AgentRegistry, path: Path) -> int:
    modified = modified_ms(path)
    fallback_session = parse_session_from_filename(path) or path.stem or "unknown"
    try:
        tail = read_tail(path, config.CODEX_TAIL_BYTES)
    except OSError as exc:
        logger.debug("Skipping unreadable Codex log %s: %s", path, exc)
        record_parse_failure(SOURCE)
        return 0

    count = 0
    for record in iter_json_lines(tail):
        payload = as_dict(record.get("payload"))
        kind = first_string(record, "type") or ""
        payload_type = first_string(payload, "type") or ""
        # Payload ids on other records name items or calls, not the session.
        meta_id = first_string(payload, "id") if kind == "session_meta" else None
        session_id = meta_id or first_string(record, "session_id", "sessionId") or fallback_session

        classified = classify_record(SOURCE, kind, payload_type, record, payload)
        if classified is None:
            continue
        ts = record_timestamp(record, payload, modified)
        registry.fold_event(
            agent_key(SOURCE, session_id),
            SOURCE,
            session_id,
            MonitorEventView(
                ts_ms=ts,
                type=classified.event_type,
                state_hint=classified.state,
                text=classified.text,
            ),
            repo_path=extract_repo_path(record, payload),
            agent_name=extract_agent_name(kind, payload_type, record, payload),
        )
        count += 1
    return count


def scan_sessions(registry: AgentRegistry, sessions_root: Path | None = None) -> int:
    """Fold the newest Codex logs into the registry; returns observations read."""
    root = sessions_root or config.codex_sessions_root()
    if not path_exists(root):
        logger.debug("Codex sessions root not found at %s", root)
        return 0

    count = 0
    for path in collect_files(root, ".jsonl", config.MAX_CODEX_FILES):
        count += _scan_file(registry, path)
    return count
