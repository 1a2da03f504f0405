"""Tail-read Claude Code transcripts (`~/.claude/projects/<project>/<session>.jsonl`)."""
from __future__ import annotations

import logging
from pathlib import Path

from agentwatch import config
from agentwatch.agent_registry import AgentRegistry
from agentwatch.date_utils import iso_to_epoch_ms, modified_ms
from agentwatch.display import agent_key
from agentwatch.models import MonitorEventView
from agentwatch.observability import record_parse_failure
from agentwatch.parsers.classifier import classify_record
from agentwatch.parsers.fs_utils import as_dict, collect_files, first_string, iter_json_lines, path_exists, read_tail

logger = logging.getLogger("agentwatch.scanner")

SOURCE = "claude"


def _scan_file(registry: AgentRegistry, path: Path) -> int:
    modified = modified_ms(path)
    try:
        tail = read_tail(path, config.CODEX_TAIL_BYTES)
    except OSError as exc:
        logger.debug("Skipping unreadable Claude transcript %s: %s", path, exc)
        record_parse_failure(SOURCE)
        return 0

    count = 0
    title: str | None = None
    for record in iter_json_lines(tail):
        kind = first_string(record, "type") or ""
        if kind == "summary":
            title = " ".join((first_string(record, "summary") or "").split()) or title
            continue

        session_id = first_string(record, "sessionId", "session_id") or path.stem
        message = as_dict(record.get("message"))
        classified = classify_record(SOURCE, kind, first_string(message, "role") or "", record, message)
        if classified is None:
            continue

        ts = iso_to_epoch_ms(record.get("timestamp"))
        registry.fold_event(
            agent_key(SOURCE, session_id),
            SOURCE,
            session_id,
            MonitorEventView(
                ts_ms=ts if ts is not None else modified,
                type=classified.event_type,
                state_hint=classified.state,
                text=classified.text,
            ),
            repo_path=first_string(record, "cwd"),
            agent_name=title,
        )
        count += 1
    return count


def scan_transcripts(registry: AgentRegistry, projects_root: Path | None = None) -> int:
    """Fold the newest Claude Code transcripts into the registry."""
    root = projects_root or config.claude_projects_root()
    if not path_exists(root):
        logger.debug("Claude projects root not found at %s", root)
        return 0

    count = 0
    for path in collect_files(root, ".jsonl", config.MAX_CLAUDE_FILES):
        count += _scan_file(registry, path)
    return count
