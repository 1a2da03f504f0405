"""Pydantic models matching the monitor UI's snapshot payloads."""
from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Optional

# ── Snapshot models ─────────────────────────────────────────────────

class MonitorEventView(BaseModel):
    ts_ms: int
    type: str  # "message" | "tool" | "cmd" | "error" | "status"
    state_hint: str  # "idle" | "thinking" | "running" | "waiting" | "done" | "error"
    text: Optional[str] = None
    files_touched: list[str] = Field(default_factory=list)


class MonitorAlert(BaseModel):
    kind: str  # "error" | "pr-pending" | "dirty"
    message: str
    ts_ms: int


class MonitorAgentView(BaseModel):
    key: str
    source: str
    session_id: str
    agent_id: str
    display_name: str
    state: str
    last_ts_ms: int
    last_text: Optional[str] = None
    repo_path: Optional[str] = None
    # Reserved; no scanner populates file activity yet.
    files_touched: list[str] = Field(default_factory=list)
    alerts: list[MonitorAlert] = Field(default_factory=list)
    recent_events: list[MonitorEventView] = Field(default_factory=list)


class MonitorSummary(BaseModel):
    total: int = 0
    active: int = 0
    waiting: int = 0
    done: int = 0
    error: int = 0
    pr_pending: int = 0
    alerts: int = 0


class MonitorSnapshot(BaseModel):
    summary: MonitorSummary = Field(default_factory=MonitorSummary)
    agents: list[MonitorAgentView] = Field(default_factory=list)
    now_ms: int


class MonitorNotification(BaseModel):
    title: str
    message: str
    kind: str  # "done" | "error"
    key: str


class MonitorTickPayload(BaseModel):
    snapshot: MonitorSnapshot
    notifications: list[MonitorNotification] = Field(default_factory=list)


# ── Settings models ─────────────────────────────────────────────────

class MonitorSettings(BaseModel):
    enabled: bool = True
    enableClaude: bool = True
    enableOpencode: bool = True
    enableCodex: bool = True
    enableGit: bool = True
    enablePr: bool = True
    flushIntervalMs: int = 1000
    sourcePollIntervalMs: int = 2000
    gitPollIntervalMs: int = 20000
    prPollIntervalMs: int = 90000
    agentLabelFontPx: int = 24
    maxIdleAgents: int = 3


class RepoBinding(BaseModel):
    source: str
    sessionId: str
    repoPath: str
