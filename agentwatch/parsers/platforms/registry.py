"""Scanner registry for the monitored tool families."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

from agentwatch.agent_registry import AgentRegistry
from agentwatch.models import MonitorSettings
from agentwatch.parsers.platforms.claude_code import parser as claude_code_parser
from agentwatch.parsers.platforms.codex import parser as codex_parser
from agentwatch.parsers.platforms.opencode import database as opencode_database
from agentwatch.parsers.platforms.opencode import storage as opencode_storage


@dataclass(frozen=True)
class SourceScanner:
    source: str
    setting: str  # MonitorSettings flag that enables this scanner
    scan: Callable[[AgentRegistry], Awaitable[int]]


async def scan_opencode(registry: AgentRegistry) -> int:
    """Prefer the SQLite store; fall back to the JSON files only when it is unavailable."""
    count = await opencode_database.scan_database(registry)
    if count is not None:
        return count
    return await asyncio.to_thread(opencode_storage.scan_storage, registry)


async def scan_codex(registry: AgentRegistry) -> int:
    return await asyncio.to_thread(codex_parser.scan_sessions, registry)


async def scan_claude(registry: AgentRegistry) -> int:
    return await asyncio.to_thread(claude_code_parser.scan_transcripts, registry)


SCANNERS: tuple[SourceScanner, ...] = (
    SourceScanner("opencode", "enableOpencode", scan_opencode),
    SourceScanner("codex", "enableCodex", scan_codex),
    SourceScanner("claude", "enableClaude", scan_claude),
)


def enabled_scanners(settings: MonitorSettings) -> list[SourceScanner]:
    return [scanner for scanner in SCANNERS if getattr(settings, scanner.setting, False)]
