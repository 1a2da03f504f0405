"""Snapshot aggregation and edge-triggered done/error notifications."""
from __future__ import annotations

import threading
from typing import Iterable

from agentwatch.display import format_agent_display_name, normalize_source_name
from agentwatch.models import (
    MonitorAgentView,
    MonitorAlert,
    MonitorNotification,
    MonitorSnapshot,
    MonitorSummary,
)
from agentwatch.agent_registry import AgentRecord

_NOTIFY_STATES = {"done", "error"}


def build_agent_view(record: AgentRecord) -> MonitorAgentView:
    alerts: list[MonitorAlert] = []
    if record.state == "error":
        alerts.append(MonitorAlert(
            kind="error",
            message=record.last_text or "Error detected",
            ts_ms=record.last_ts_ms,
        ))

    return MonitorAgentView(
        key=record.key,
        source=normalize_source_name(record.source),
        session_id=record.session_id,
        agent_id=record.session_id,
        display_name=format_agent_display_name(
            record.source,
            record.session_id,
            record.agent_name,
            record.repo_path,
        ),
        state=record.state,
        last_ts_ms=record.last_ts_ms,
        last_text=record.last_text,
        repo_path=record.repo_path,
        files_touched=[],
        alerts=alerts,
        recent_events=list(record.recent_events),
    )


def summarize(agents: list[MonitorAgentView]) -> MonitorSummary:
    return MonitorSummary(
        total=len(agents),
        active=sum(1 for a in agents if a.state in ("running", "thinking")),
        waiting=sum(1 for a in agents if a.state == "waiting"),
        done=sum(1 for a in agents if a.state == "done"),
        error=sum(1 for a in agents if a.state == "error"),
        pr_pending=0,
        alerts=sum(len(a.alerts) for a in agents),
    )


def build_snapshot(records: Iterable[AgentRecord], now_ms: int) -> MonitorSnapshot:
    """Project merged records into views ordered by most recent activity."""
    agents = [build_agent_view(record) for record in records]
    agents.sort(key=lambda agent: agent.last_ts_ms, reverse=True)
    return MonitorSnapshot(summary=summarize(agents), agents=agents, now_ms=now_ms)


def _notification_for(agent: MonitorAgentView) -> MonitorNotification:
    is_error = agent.state == "error"
    fallback = "Error" if is_error else "Completed"
    return MonitorNotification(
        title="Agent error" if is_error else "Agent done",
        message=f"{agent.display_name} - {agent.last_text or fallback}",
        kind="error" if is_error else "done",
        key=agent.key,
    )


class NotificationDiffer:
    """Owns the previous poll's key→state table.

    The table is replaced wholesale on every diff, so keys missing from a
    poll forget their history.
    """

    def __init__(self) -> None:
        self._previous_states: dict[str, str] = {}
        self._lock = threading.Lock()

    def diff(self, agents: list[MonitorAgentView]) -> list[MonitorNotification]:
        notifications: list[MonitorNotification] = []
        next_states: dict[str, str] = {}
        with self._lock:
            for agent in agents:
                next_states[agent.key] = agent.state
                if agent.state in _NOTIFY_STATES and self._previous_states.get(agent.key) != agent.state:
                    notifications.append(_notification_for(agent))
            self._previous_states = next_states
        return notifications

    def reset(self) -> None:
        with self._lock:
            self._previous_states = {}
