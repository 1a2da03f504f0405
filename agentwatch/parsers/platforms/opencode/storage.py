"""Scan OpenCode's JSON file store (message/part/session/project trees)."""
from __future__ import annotations

import logging
from pathlib import Path

from agentwatch import config
from agentwatch.agent_registry import AgentRecord, AgentRegistry
from agentwatch.date_utils import modified_ms, normalize_epoch_ms
from agentwatch.display import agent_key, truncate_optional_text
from agentwatch.models import MonitorEventView
from agentwatch.observability import record_parse_failure
from agentwatch.parsers.classifier import classify_record, opencode_part_timestamp
from agentwatch.parsers.fs_utils import (
    as_dict,
    collect_files,
    first_string,
    number_at,
    path_exists,
    safe_read_json,
    string_at,
)

logger = logging.getLogger("agentwatch.scanner")

SOURCE = "opencode"


def load_session_maps(storage_root: Path) -> tuple[dict[str, str], dict[str, str]]:
    """Return (session → worktree, session → title) from the session tree."""
    session_repo: dict[str, str] = {}
    session_name: dict[str, str] = {}
    session_root = storage_root / "session"
    if not path_exists(session_root):
        return session_repo, session_name

    project_root = storage_root / "project"
    project_cache: dict[str, str | None] = {}
    for path in collect_files(session_root, ".json", config.MAX_OPENCODE_FILES):
        data = safe_read_json(path)
        if data is None:
            record_parse_failure(SOURCE)
            continue
        session_id = first_string(data, "id") or path.stem
        title = first_string(data, "title")
        if title:
            session_name[session_id] = title

        project_id = first_string(data, "projectID", "projectId")
        if not project_id:
            continue
        if project_id not in project_cache:
            project = safe_read_json(project_root / f"{project_id}.json")
            project_cache[project_id] = first_string(project, "worktree") if project else None
        worktree = project_cache[project_id]
        if worktree:
            session_repo[session_id] = worktree

    return session_repo, session_name


def _scan_messages(
    registry: AgentRegistry,
    message_root: Path,
    session_repo: dict[str, str],
    session_name: dict[str, str],
) -> int:
    count = 0
    for path in collect_files(message_root, ".json", config.MAX_OPENCODE_FILES):
        data = safe_read_json(path)
        if data is None:
            logger.debug("Skipping unreadable OpenCode message %s", path)
            record_parse_failure(SOURCE)
            continue

        session_id = first_string(data, "sessionID", "sessionId") or path.parent.name or "unknown"
        created = number_at(data, "time", "created")
        ts = normalize_epoch_ms(created if created is not None else modified_ms(path))
        state = "done" if number_at(data, "time", "completed") is not None else "running"
        text = truncate_optional_text(first_string(data, "summary", "finish"))
        repo_path = (
            string_at(data, "path", "root")
            or string_at(data, "path", "cwd")
            or session_repo.get(session_id)
        )

        registry.upsert(AgentRecord(
            key=agent_key(SOURCE, session_id),
            source=SOURCE,
            session_id=session_id,
            agent_name=session_name.get(session_id),
            state=state,
            last_ts_ms=ts,
            last_text=text,
            repo_path=repo_path,
            recent_events=[MonitorEventView(ts_ms=ts, type="message", state_hint=state, text=text)],
        ))
        count += 1
    return count


def _scan_parts(
    registry: AgentRegistry,
    part_root: Path,
    session_repo: dict[str, str],
    session_name: dict[str, str],
) -> int:
    count = 0
    for path in collect_files(part_root, ".json", config.MAX_OPENCODE_PART_FILES):
        data = safe_read_json(path)
        if data is None:
            logger.debug("Skipping unreadable OpenCode part %s", path)
            record_parse_failure(SOURCE)
            continue

        session_id = first_string(data, "sessionID", "sessionId")
        if not session_id:
            continue

        part_type = string_at(data, "type") or ""
        state_obj = as_dict(data.get("state"))
        classified = classify_record(SOURCE, part_type, "", data, state_obj)
        if classified is None:
            continue

        ts = opencode_part_timestamp(data, normalize_epoch_ms(modified_ms(path)))
        registry.upsert(AgentRecord(
            key=agent_key(SOURCE, session_id),
            source=SOURCE,
            session_id=session_id,
            agent_name=session_name.get(session_id),
            state=classified.state,
            last_ts_ms=ts,
            last_text=classified.text,
            repo_path=session_repo.get(session_id),
            recent_events=[MonitorEventView(
                ts_ms=ts,
                type=classified.event_type,
                state_hint=classified.state,
                text=classified.text,
            )],
        ))
        count += 1
    return count


def scan_storage(registry: AgentRegistry, storage_root: Path | None = None) -> int:
    """Fold OpenCode's JSON store into the registry; returns observations read."""
    root = storage_root or config.opencode_storage_root()
    message_root = root / "message"
    if not path_exists(message_root):
        logger.debug("OpenCode message store not found at %s", message_root)
        return 0

    session_repo, session_name = load_session_maps(root)
    count = _scan_messages(registry, message_root, session_repo, session_name)

    part_root = root / "part"
    if path_exists(part_root):
        count += _scan_parts(registry, part_root, session_repo, session_name)
    return count
