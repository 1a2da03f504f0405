"""Silence-based state decay for agents that stopped reporting."""
from __future__ import annotations

from agentwatch import config
from agentwatch.agent_registry import AgentRecord

ACTIVE_STATES = frozenset({"running", "thinking", "waiting"})


def apply_aging(
    record: AgentRecord,
    now_ms: int,
    idle_after_ms: int | None = None,
    done_after_ms: int | None = None,
) -> AgentRecord:
    """Move quiet agents to idle, and long-idle agents to done, in place."""
    idle_after = config.IDLE_AFTER_MS if idle_after_ms is None else idle_after_ms
    done_after = config.DONE_AFTER_MS if done_after_ms is None else done_after_ms
    silence = now_ms - record.last_ts_ms

    if record.state in ACTIVE_STATES and silence > idle_after:
        record.state = "idle"
        if record.last_text == "Thinking":
            record.last_text = "Idle"

    if record.state == "idle" and silence > done_after:
        record.state = "done"
        if not record.last_text or record.last_text in ("Idle", "Thinking"):
            record.last_text = "No recent activity"

    return record
