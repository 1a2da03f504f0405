import tempfile
import types
import unittest
from pathlib import Path
from unittest.mock import patch

from fastapi import HTTPException

from agentwatch import config
from agentwatch.models import MonitorSnapshot, MonitorTickPayload, RepoBinding
from agentwatch.routers import monitor as monitor_routes
from agentwatch.services.monitor import MonitorService
from agentwatch.settings_store import SettingsStoreError


class _FakeMonitorService:
    def __init__(self) -> None:
        self.calls = 0

    async def tick(self, settings=None, now_ms=None):
        self.calls += 1
        return MonitorTickPayload(snapshot=MonitorSnapshot(now_ms=42))


def _request(**state):
    return types.SimpleNamespace(app=types.SimpleNamespace(state=types.SimpleNamespace(**state)))


class MonitorRouterTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.base = Path(tmpdir.name)
        for name, value in (
            ("MONITOR_SETTINGS_FILE", self.base / "state" / "monitor-settings.json"),
            ("REPO_BINDINGS_FILE", self.base / "state" / "monitor-repo-bindings.json"),
            ("CODEX_HOME", self.base / "codex"),
            ("OPENCODE_DATA_DIR", self.base / "opencode"),
        ):
            patcher = patch.object(config, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

    async def test_tick_uses_app_service(self) -> None:
        service = _FakeMonitorService()
        payload = await monitor_routes.monitor_tick(_request(monitor_service=service))
        self.assertEqual(payload.snapshot.now_ms, 42)
        self.assertEqual(service.calls, 1)

    def test_service_is_created_lazily(self) -> None:
        request = _request()
        service = monitor_routes._service(request)
        self.assertIsInstance(service, MonitorService)
        self.assertIs(monitor_routes._service(request), service)

    async def test_settings_round_trip(self) -> None:
        saved = await monitor_routes.update_monitor_settings({"maxIdleAgents": 7, "enablePr": False})
        self.assertEqual(saved.maxIdleAgents, 7)
        loaded = await monitor_routes.get_monitor_settings()
        self.assertEqual(loaded, saved)

    async def test_settings_write_failure_is_500(self) -> None:
        with patch.object(monitor_routes, "write_monitor_settings", side_effect=SettingsStoreError("disk full")):
            with self.assertRaises(HTTPException) as ctx:
                await monitor_routes.update_monitor_settings({})
        self.assertEqual(ctx.exception.status_code, 500)
        self.assertEqual(ctx.exception.detail, "disk full")

    async def test_bindings_update_and_list(self) -> None:
        updated = await monitor_routes.update_repo_binding(RepoBinding(source="codex", sessionId="abc", repoPath="/work/x"))
        self.assertEqual(updated, {"codex:abc": "/work/x"})
        self.assertEqual(await monitor_routes.list_repo_bindings(), {"codex:abc": "/work/x"})

    async def test_blank_binding_is_rejected(self) -> None:
        with self.assertRaises(HTTPException) as ctx:
            await monitor_routes.update_repo_binding(RepoBinding(source="codex", sessionId="abc", repoPath="  "))
        self.assertEqual(ctx.exception.status_code, 400)

    async def test_sessions_folder_prefers_codex(self) -> None:
        self.assertIsNone(await monitor_routes.sessions_folder())
        opencode_messages = self.base / "opencode" / "storage" / "message"
        opencode_messages.mkdir(parents=True)
        self.assertEqual(await monitor_routes.sessions_folder(), str(opencode_messages))
        codex_sessions = self.base / "codex" / "sessions"
        codex_sessions.mkdir(parents=True)
        self.assertEqual(await monitor_routes.sessions_folder(), str(codex_sessions))


if __name__ == "__main__":
    unittest.main()
