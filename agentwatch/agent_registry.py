"""Per-poll agent registry and the merge policy for repeated observations."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Optional

from agentwatch import config
from agentwatch.models import MonitorEventView


@dataclass
class AgentRecord:
    """One merged observation of an agent, rebuilt from scratch every poll."""

    key: str
    source: str
    session_id: str
    state: str
    last_ts_ms: int
    agent_name: Optional[str] = None
    last_text: Optional[str] = None
    repo_path: Optional[str] = None
    recent_events: list[MonitorEventView] = field(default_factory=list)


def _event_identity(event: MonitorEventView) -> tuple:
    return (event.ts_ms, event.type, event.state_hint, event.text)


def merge_events(
    newer: list[MonitorEventView],
    older: list[MonitorEventView],
    limit: int | None = None,
) -> list[MonitorEventView]:
    """Combine two histories newest first, dropping duplicates, capped to `limit`."""
    cap = config.MAX_RECENT_EVENTS if limit is None else limit
    seen: set[tuple] = set()
    merged: list[MonitorEventView] = []
    for event in sorted([*newer, *older], key=lambda item: item.ts_ms, reverse=True):
        identity = _event_identity(event)
        if identity in seen:
            continue
        seen.add(identity)
        merged.append(event)
        if len(merged) >= cap:
            break
    return merged


class AgentRegistry:
    """Keyed merge map shared by all scanners within one poll.

    Scanners may run on worker threads, so every mutation takes the lock.
    """

    def __init__(self) -> None:
        self._agents: dict[str, AgentRecord] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, key: object) -> bool:
        return key in self._agents

    def get(self, key: str) -> AgentRecord | None:
        return self._agents.get(key)

    def records(self) -> list[AgentRecord]:
        with self._lock:
            return list(self._agents.values())

    def retain(self, predicate) -> None:
        with self._lock:
            self._agents = {key: rec for key, rec in self._agents.items() if predicate(rec)}

    def upsert(self, incoming: AgentRecord) -> AgentRecord:
        """Fold an observation in, keeping whichever has the later event time.

        When the incoming record wins, fields it leaves unset are back-filled
        from the record it replaces. A record older than the stored one only
        contributes its events to the history.
        """
        with self._lock:
            existing = self._agents.get(incoming.key)
            if existing is None:
                stored = replace(incoming, recent_events=merge_events(incoming.recent_events, []))
                self._agents[incoming.key] = stored
                return stored

            if incoming.last_ts_ms >= existing.last_ts_ms:
                merged = replace(
                    incoming,
                    repo_path=incoming.repo_path if incoming.repo_path is not None else existing.repo_path,
                    last_text=incoming.last_text if incoming.last_text is not None else existing.last_text,
                    agent_name=incoming.agent_name if incoming.agent_name is not None else existing.agent_name,
                    recent_events=merge_events(incoming.recent_events, existing.recent_events),
                )
                self._agents[incoming.key] = merged
                return merged

            existing.recent_events = merge_events(existing.recent_events, incoming.recent_events)
            return existing

    def fold_event(
        self,
        key: str,
        source: str,
        session_id: str,
        event: MonitorEventView,
        repo_path: str | None = None,
        agent_name: str | None = None,
    ) -> AgentRecord:
        """Append one tail-log event to a session, advancing it only if not older.

        A session seen for the first time starts idle as "Session discovered".
        Out-of-order events still enter the history but never regress state.
        """
        with self._lock:
            existing = self._agents.get(key)
            if existing is None:
                existing = AgentRecord(
                    key=key,
                    source=source,
                    session_id=session_id,
                    state="idle",
                    last_ts_ms=event.ts_ms,
                    last_text="Session discovered",
                    repo_path=repo_path,
                )
                self._agents[key] = existing

            if existing.repo_path is None and repo_path is not None:
                existing.repo_path = repo_path
            if existing.agent_name is None and agent_name is not None:
                existing.agent_name = agent_name
            existing.recent_events = merge_events([event], existing.recent_events)
            if event.ts_ms >= existing.last_ts_ms:
                existing.last_ts_ms = event.ts_ms
                existing.state = event.state_hint
                existing.last_text = event.text
                if agent_name is not None:
                    existing.agent_name = agent_name
            return existing
