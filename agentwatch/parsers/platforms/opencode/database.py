"""Scan OpenCode's SQLite store, opened read-only.

When this scan succeeds the JSON file store is skipped for the poll, so one
session is never counted from both representations.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from agentwatch import config
from agentwatch.agent_registry import AgentRecord, AgentRegistry
from agentwatch.date_utils import normalize_epoch_ms, to_epoch_int
from agentwatch.display import agent_key
from agentwatch.models import MonitorEventView
from agentwatch.observability import record_parse_failure
from agentwatch.parsers.classifier import classify_record, opencode_part_timestamp
from agentwatch.parsers.fs_utils import as_dict, path_exists, string_at

logger = logging.getLogger("agentwatch.scanner")

SOURCE = "opencode"

_SESSIONS_QUERY = """
    SELECT id, directory, title, time_updated
    FROM session
    WHERE time_archived IS NULL OR time_archived = 0
    ORDER BY time_updated DESC
    LIMIT ?
"""

_PARTS_QUERY = """
    SELECT session_id, time_updated, data
    FROM part
    ORDER BY time_updated DESC
    LIMIT ?
"""


def _read_only_uri(db_path: Path) -> str:
    return f"{db_path.resolve().as_uri()}?mode=ro"


def _session_record(row: Any) -> AgentRecord | None:
    session_id, directory, title, time_updated = row
    updated = to_epoch_int(time_updated)
    if not isinstance(session_id, str) or not session_id or updated is None:
        return None
    ts = normalize_epoch_ms(updated)
    text = "Session activity"
    return AgentRecord(
        key=agent_key(SOURCE, session_id),
        source=SOURCE,
        session_id=session_id,
        agent_name=title if isinstance(title, str) and title else None,
        state="running",
        last_ts_ms=ts,
        last_text=text,
        repo_path=directory if isinstance(directory, str) and directory else None,
        recent_events=[MonitorEventView(ts_ms=ts, type="status", state_hint="running", text=text)],
    )


def _part_record(row: Any, session_repo: dict[str, str], session_name: dict[str, str]) -> AgentRecord | None:
    session_id, time_updated, data = row
    updated = to_epoch_int(time_updated)
    if not isinstance(session_id, str) or not session_id or updated is None:
        return None
    try:
        value = json.loads(data)
    except (TypeError, ValueError, RecursionError):
        logger.debug("Skipping undecodable OpenCode part row for %s", session_id)
        record_parse_failure(SOURCE)
        return None
    if not isinstance(value, dict):
        return None

    part_type = string_at(value, "type") or ""
    classified = classify_record(SOURCE, part_type, "", value, as_dict(value.get("state")))
    if classified is None:
        return None

    ts = opencode_part_timestamp(value, normalize_epoch_ms(updated))
    return AgentRecord(
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
    )


async def scan_database(registry: AgentRegistry, db_path: Path | None = None) -> int | None:
    """Fold OpenCode's database into the registry.

    Returns the number of observations read, or `None` when the database is
    missing or unreadable and the caller should fall back to the JSON store.
    """
    path = db_path or config.opencode_db_file()
    if not path_exists(path):
        return None

    session_repo: dict[str, str] = {}
    session_name: dict[str, str] = {}
    count = 0
    try:
        async with aiosqlite.connect(_read_only_uri(path), uri=True) as db:
            async with db.execute(_SESSIONS_QUERY, (config.MAX_OPENCODE_DB_SESSIONS,)) as cur:
                session_rows = await cur.fetchall()
            for row in session_rows:
                record = _session_record(row)
                if record is None:
                    continue
                if record.repo_path:
                    session_repo[record.session_id] = record.repo_path
                if record.agent_name:
                    session_name[record.session_id] = record.agent_name
                registry.upsert(record)
                count += 1

            async with db.execute(_PARTS_QUERY, (config.MAX_OPENCODE_DB_PARTS,)) as cur:
                part_rows = await cur.fetchall()
            for row in part_rows:
                record = _part_record(row, session_repo, session_name)
                if record is None:
                    continue
                registry.upsert(record)
                count += 1
    except aiosqlite.Error as exc:
        logger.debug("OpenCode database unavailable at %s: %s", path, exc)
        return None

    return count
