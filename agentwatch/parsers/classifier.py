"""Map source-specific session records onto the canonical agent states.

Every scanner funnels its raw records through `classify_record`, which returns
the state hint, the event kind and a short display text. The rules are
heuristics tuned per tool:

* OpenCode parts (JSON store and SQLite store) are classified by part type.
* Codex rollout lines are matched by substring over `"<type> <payload.type>"`
  in a fixed priority order, so a record carrying several tokens resolves to
  the earliest rule.
* Claude Code transcript lines are classified by role and content blocks.

Display text is always truncated to the monitor's character budget.
"""
from __future__ import annotations

from typing import Any, NamedTuple

from agentwatch.display import truncate_optional_text
from agentwatch.parsers.fs_utils import as_dict, first_string, number_at, string_at
from agentwatch.date_utils import normalize_epoch_ms

_CODEX_DONE_TOKENS = (
    "task_complete",
    "turn_completed",
    "turn.complete",
    "task.complete",
    "item.completed",
    "completed",
)
_CODEX_ABORT_TOKENS = ("turn_aborted", "task_aborted", "aborted")
_CODEX_ERROR_TOKENS = ("error", "failed", "exception", "fatal")
_CODEX_TOOL_CALL_TYPES = {"function_call", "custom_tool_call"}
_CODEX_TOOL_OUTPUT_TYPES = {"function_call_output", "custom_tool_call_output"}
_CODEX_THINKING_TYPES = {"agent_reasoning", "reasoning", "token_count"}


class Classification(NamedTuple):
    state: str
    event_type: str
    text: str | None


def _result(state: str, event_type: str, text: str | None) -> Classification:
    return Classification(state, event_type, truncate_optional_text(text))


def _compact(value: str | None) -> str:
    return " ".join((value or "").split())


# ── OpenCode ────────────────────────────────────────────────────────

def _classify_opencode_part(part_type: str, part: dict[str, Any], state_obj: dict[str, Any]) -> Classification | None:
    if part_type == "tool":
        status = (string_at(state_obj, "status") or "running").lower()
        tool_name = string_at(part, "tool") or "tool"
        has_end = number_at(state_obj, "time", "end") is not None
        if status == "error":
            hint = "error"
        elif status == "completed" or has_end:
            hint = "done"
        else:
            hint = "running"
        return _result(hint, "error" if status == "error" else "tool", f"{tool_name}: {status}")
    if part_type == "reasoning":
        return _result("thinking", "status", string_at(part, "text") or "Thinking")
    if part_type == "step-start":
        return _result("running", "status", "Step started")
    if part_type == "step-finish":
        reason = string_at(part, "reason") or "stop"
        return _result("done", "status", f"Step finished: {reason}")
    return None


def opencode_part_timestamp(part: dict[str, Any], fallback_ts: int) -> int:
    """Event time for a part: its end time, else its start time, else the fallback."""
    part_type = string_at(part, "type") or ""
    if part_type == "tool":
        times = as_dict(as_dict(part.get("state")).get("time"))
    elif part_type == "reasoning":
        times = as_dict(part.get("time"))
    else:
        return fallback_ts
    end_ts = number_at(times, "end")
    if end_ts is not None:
        return normalize_epoch_ms(end_ts)
    start_ts = number_at(times, "start")
    if start_ts is not None:
        return normalize_epoch_ms(start_ts)
    return fallback_ts


# ── Codex ───────────────────────────────────────────────────────────

def _classify_codex(kind: str, payload_type: str, record: dict[str, Any], payload: dict[str, Any]) -> Classification:
    lower = f"{kind.lower()} {payload_type.lower()}"
    if any(token in lower for token in _CODEX_DONE_TOKENS):
        return _result("done", "status", "Turn completed")
    if any(token in lower for token in _CODEX_ABORT_TOKENS):
        return _result("waiting", "status", "Turn aborted")
    if any(token in lower for token in _CODEX_ERROR_TOKENS):
        return _result("error", "error", "Codex error")

    message = first_string(record, "message") or first_string(payload, "message")
    if payload_type in ("agent_message", "message"):
        return _result("running", "message", message or "Assistant message")
    if payload_type in _CODEX_THINKING_TYPES:
        return _result("thinking", "status", "Thinking")
    if payload_type == "task_started":
        return _result("running", "status", "Task started")
    if payload_type == "user_message":
        return _result("waiting", "message", "Waiting for input")
    if payload_type in _CODEX_TOOL_CALL_TYPES:
        name = first_string(payload, "name") or string_at(payload, "function", "name") or "tool"
        return _result("running", "tool", f"{name}: running")
    if payload_type in _CODEX_TOOL_OUTPUT_TYPES:
        return _result("running", "tool", "Tool output")
    return _result("running", "message", message or kind)


# ── Claude Code ─────────────────────────────────────────────────────

def _content_blocks(message: dict[str, Any]) -> list[dict[str, Any]]:
    content = message.get("content")
    if isinstance(content, list):
        return [block for block in content if isinstance(block, dict)]
    return []


def _first_text(message: dict[str, Any]) -> str:
    content = message.get("content")
    if isinstance(content, str):
        return _compact(content)
    for block in _content_blocks(message):
        if block.get("type") == "text":
            text = _compact(string_at(block, "text"))
            if text:
                return text
    return ""


def _classify_claude(kind: str, record: dict[str, Any], message: dict[str, Any]) -> Classification:
    if record.get("isApiErrorMessage") is True or (kind == "system" and string_at(record, "level") == "error"):
        return _result("error", "error", _first_text(message) or _compact(string_at(record, "content")) or "Claude error")

    if kind == "assistant":
        blocks = _content_blocks(message)
        block_types = {str(block.get("type") or "") for block in blocks}
        if "thinking" in block_types or "redacted_thinking" in block_types:
            return _result("thinking", "status", "Thinking")
        for block in blocks:
            if block.get("type") == "tool_use":
                name = string_at(block, "name") or "tool"
                return _result("running", "tool", f"{name}: running")
        text = _first_text(message)
        if string_at(message, "stop_reason") == "end_turn":
            return _result("done", "status", text or "Turn completed")
        return _result("running", "message", text or "Assistant message")

    if kind == "user":
        if any(block.get("type") == "tool_result" for block in _content_blocks(message)):
            return _result("running", "tool", "Tool output")
        return _result("running", "message", "Prompt received")

    if kind == "system" and string_at(record, "subtype") == "turn_duration":
        return _result("done", "status", "Turn completed")

    return _result("running", "status", kind or "event")


# ── Dispatch ────────────────────────────────────────────────────────

def classify_record(
    source_kind: str,
    record_kind: str,
    payload_kind: str,
    record: dict[str, Any],
    payload: dict[str, Any],
) -> Classification | None:
    """Classify one raw record; `None` means the record carries no agent state.

    `record_kind` is the record's own type field and `payload_kind` the type of
    its nested payload (OpenCode: the part's `state` object has no type, so
    `payload_kind` is unused; Claude: the nested `message`).
    """
    if source_kind == "opencode":
        return _classify_opencode_part(record_kind, record, payload)
    if source_kind == "codex":
        return _classify_codex(record_kind, payload_kind, record, payload)
    if source_kind == "claude":
        return _classify_claude(record_kind, record, payload)
    return None
