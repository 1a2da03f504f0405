"""The monitor poll: scan every enabled source, merge, age, snapshot, notify.

Each call to `MonitorService.tick` rebuilds the agent set from scratch. The
only state carried between polls is the notification differ's key→state
table, and whole polls are serialized so snapshots never interleave.
"""
from __future__ import annotations

import asyncio
import logging
import time

from agentwatch import config
from agentwatch.agent_registry import AgentRegistry
from agentwatch.date_utils import now_ms as current_ms
from agentwatch.display import normalize_source_name
from agentwatch.models import MonitorSettings, MonitorSnapshot, MonitorTickPayload
from agentwatch.observability import record_poll, record_scan, start_span
from agentwatch.parsers.platforms.registry import SourceScanner, enabled_scanners
from agentwatch.services.aging import apply_aging
from agentwatch.services.snapshot import NotificationDiffer, build_snapshot
from agentwatch.settings_store import read_monitor_settings, read_repo_bindings

logger = logging.getLogger("agentwatch.monitor")


async def _run_scanner(scanner: SourceScanner, registry: AgentRegistry) -> int:
    started = time.perf_counter()
    try:
        with start_span("agentwatch.scan", {"source": scanner.source}):
            count = await scanner.scan(registry)
    except OSError as exc:
        duration_ms = (time.perf_counter() - started) * 1000
        record_scan(scanner.source, "error", duration_ms)
        logger.warning("Scanner %s unavailable this poll: %s", scanner.source, exc)
        return 0
    duration_ms = (time.perf_counter() - started) * 1000
    record_scan(scanner.source, "ok", duration_ms, count)
    logger.debug("Scanned %s: %d observations in %.1fms", scanner.source, count, duration_ms)
    return count


class MonitorService:
    """Owns the cross-poll notification state and runs polls one at a time."""

    def __init__(
        self,
        idle_after_ms: int | None = None,
        done_after_ms: int | None = None,
    ) -> None:
        self.idle_after_ms = config.IDLE_AFTER_MS if idle_after_ms is None else idle_after_ms
        self.done_after_ms = config.DONE_AFTER_MS if done_after_ms is None else done_after_ms
        self.differ = NotificationDiffer()
        self._poll_lock = asyncio.Lock()

    def reset(self) -> None:
        self.differ.reset()

    async def collect(self, settings: MonitorSettings) -> AgentRegistry:
        """Run the enabled scanners concurrently into one registry."""
        registry = AgentRegistry()
        scanners = enabled_scanners(settings)
        await asyncio.gather(*(_run_scanner(scanner, registry) for scanner in scanners))

        if not settings.enableClaude:
            registry.retain(lambda record: normalize_source_name(record.source) != "claude")

        bindings = read_repo_bindings()
        for record in registry.records():
            if record.repo_path is None and record.key in bindings:
                record.repo_path = bindings[record.key]
        return registry

    async def tick(
        self,
        settings: MonitorSettings | None = None,
        now_ms: int | None = None,
    ) -> MonitorTickPayload:
        async with self._poll_lock:
            active_settings = settings or read_monitor_settings()
            if not active_settings.enabled:
                return MonitorTickPayload(
                    snapshot=MonitorSnapshot(now_ms=current_ms() if now_ms is None else now_ms),
                    notifications=[],
                )

            started = time.perf_counter()
            with start_span("agentwatch.poll"):
                registry = await self.collect(active_settings)
                now = current_ms() if now_ms is None else now_ms
                records = [
                    apply_aging(record, now, self.idle_after_ms, self.done_after_ms)
                    for record in registry.records()
                ]
                snapshot = build_snapshot(records, now)
                notifications = self.differ.diff(snapshot.agents)

            record_poll((time.perf_counter() - started) * 1000, snapshot.summary.total)
            logger.debug(
                "Poll complete: %d agents, %d notifications",
                snapshot.summary.total,
                len(notifications),
            )
            return MonitorTickPayload(snapshot=snapshot, notifications=notifications)
