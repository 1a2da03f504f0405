"""Display helpers: source names, text truncation and agent labels."""
from __future__ import annotations

from pathlib import PurePath

from agentwatch import config

_ELLIPSIS = "..."

_SOURCE_ALIASES: dict[str, str] = {
    "claude": "claude",
    "claude code": "claude",
    "claude-code": "claude",
    "claudecode": "claude",
    "opencode": "opencode",
    "open": "opencode",
    "open-code": "opencode",
    "open_code": "opencode",
    "codex": "codex",
}


def normalize_source_name(source: str) -> str:
    """Map known tool aliases onto canonical source names; others pass through."""
    return _SOURCE_ALIASES.get((source or "").strip().lower(), source)


def agent_key(source: str, session_id: str) -> str:
    return f"{source}:{session_id}"


def truncate_text(text: str, limit: int | None = None) -> str:
    """Truncate by characters (not bytes), appending an ellipsis when cut."""
    max_chars = config.MAX_MONITOR_TEXT_CHARS if limit is None else limit
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + _ELLIPSIS


def truncate_optional_text(text: str | None) -> str | None:
    if text is None:
        return None
    return truncate_text(text)


def normalize_agent_name(name: str | None) -> str | None:
    compact = " ".join((name or "").split())
    if not compact:
        return None
    return truncate_text(compact, config.MAX_AGENT_NAME_CHARS)


def repo_label(repo_path: str | None) -> str | None:
    trimmed = (repo_path or "").strip()
    if not trimmed:
        return None
    name = PurePath(trimmed).name.strip() or trimmed
    return name or None


def short_session(session_id: str) -> str:
    return session_id[:8]


def format_agent_display_name(
    source: str,
    session_id: str,
    agent_name: str | None = None,
    repo_path: str | None = None,
) -> str:
    """Build `<source>: <name>` from title, repo folder, or session id prefix."""
    normalized_source = normalize_source_name(source)
    name = normalize_agent_name(agent_name)
    if name:
        return f"{normalized_source}: {name}"
    repo_name = normalize_agent_name(repo_label(repo_path))
    if repo_name:
        return f"{normalized_source}: {repo_name}"
    return f"{normalized_source}: {short_session(session_id)}"
