"""Monitor API: poll ticks, settings and repo bindings."""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Body, HTTPException, Request

from agentwatch import config
from agentwatch.models import MonitorSettings, MonitorTickPayload, RepoBinding
from agentwatch.parsers.fs_utils import path_exists
from agentwatch.services.monitor import MonitorService
from agentwatch.settings_store import (
    SettingsStoreError,
    bind_repo,
    read_monitor_settings,
    read_repo_bindings,
    write_monitor_settings,
)

monitor_router = APIRouter(prefix="/api/monitor", tags=["monitor"])


def _service(request: Request) -> MonitorService:
    service = getattr(request.app.state, "monitor_service", None)
    if service is None:
        service = MonitorService()
        request.app.state.monitor_service = service
    return service


@monitor_router.get("/tick", response_model=MonitorTickPayload)
async def monitor_tick(request: Request):
    return await _service(request).tick()


@monitor_router.get("/settings", response_model=MonitorSettings)
async def get_monitor_settings():
    return read_monitor_settings()


@monitor_router.put("/settings", response_model=MonitorSettings)
async def update_monitor_settings(payload: dict[str, Any] = Body(...)):
    try:
        return write_monitor_settings(payload)
    except SettingsStoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@monitor_router.get("/bindings", response_model=dict[str, str])
async def list_repo_bindings():
    return read_repo_bindings()


@monitor_router.put("/bindings", response_model=dict[str, str])
async def update_repo_binding(binding: RepoBinding):
    if not binding.repoPath.strip():
        raise HTTPException(status_code=400, detail="repoPath is required")
    try:
        return bind_repo(binding.source, binding.sessionId, binding.repoPath)
    except SettingsStoreError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


@monitor_router.get("/sessions-folder", response_model=Optional[str])
async def sessions_folder():
    """First existing session store, for the UI's "open folder" action."""
    for candidate in (config.codex_sessions_root(), config.opencode_storage_root() / "message"):
        if path_exists(candidate):
            return str(candidate)
    return None
