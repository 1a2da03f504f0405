import json
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from agentwatch import config
from agentwatch.models import MonitorSettings
from agentwatch.settings_store import (
    SettingsStoreError,
    bind_repo,
    read_monitor_settings,
    read_repo_bindings,
    sanitize_monitor_settings,
    write_monitor_settings,
)


class SanitizeMonitorSettingsTests(unittest.TestCase):
    def test_non_object_yields_defaults(self) -> None:
        self.assertEqual(sanitize_monitor_settings(None), MonitorSettings())
        self.assertEqual(sanitize_monitor_settings([1, 2]), MonitorSettings())

    def test_fields_are_coerced_individually(self) -> None:
        settings = sanitize_monitor_settings({
            "enabled": False,
            "enableCodex": "no",
            "flushIntervalMs": 250,
            "sourcePollIntervalMs": 1500.6,
            "gitPollIntervalMs": "fast",
            "agentLabelFontPx": 41,
            "maxIdleAgents": -1,
        })
        self.assertFalse(settings.enabled)
        self.assertTrue(settings.enableCodex)
        self.assertEqual(settings.flushIntervalMs, 1000)
        self.assertEqual(settings.sourcePollIntervalMs, 1501)
        self.assertEqual(settings.gitPollIntervalMs, 20000)
        self.assertEqual(settings.agentLabelFontPx, 24)
        self.assertEqual(settings.maxIdleAgents, 3)

    def test_bounds_are_inclusive(self) -> None:
        settings = sanitize_monitor_settings({"prPollIntervalMs": 500, "agentLabelFontPx": 14, "maxIdleAgents": 0})
        self.assertEqual(settings.prPollIntervalMs, 500)
        self.assertEqual(settings.agentLabelFontPx, 14)
        self.assertEqual(settings.maxIdleAgents, 0)


class SettingsFileTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.state_dir = Path(tmpdir.name) / "state"
        for name, filename in (
            ("MONITOR_SETTINGS_FILE", "monitor-settings.json"),
            ("REPO_BINDINGS_FILE", "monitor-repo-bindings.json"),
        ):
            patcher = patch.object(config, name, self.state_dir / filename)
            patcher.start()
            self.addCleanup(patcher.stop)

    def test_missing_files_read_as_defaults(self) -> None:
        self.assertEqual(read_monitor_settings(), MonitorSettings())
        self.assertEqual(read_repo_bindings(), {})

    def test_corrupt_settings_read_as_defaults(self) -> None:
        self.state_dir.mkdir(parents=True)
        config.MONITOR_SETTINGS_FILE.write_text("{oops", encoding="utf-8")
        self.assertEqual(read_monitor_settings(), MonitorSettings())

    def test_write_sanitizes_and_persists(self) -> None:
        saved = write_monitor_settings({"enableClaude": False, "agentLabelFontPx": 99})
        self.assertFalse(saved.enableClaude)
        self.assertEqual(saved.agentLabelFontPx, 24)
        on_disk = json.loads(config.MONITOR_SETTINGS_FILE.read_text(encoding="utf-8"))
        self.assertFalse(on_disk["enableClaude"])
        self.assertEqual(read_monitor_settings(), saved)

    def test_write_failure_raises_store_error(self) -> None:
        blocker = self.state_dir.parent / "blocker"
        blocker.write_text("", encoding="utf-8")
        with patch.object(config, "MONITOR_SETTINGS_FILE", blocker / "monitor-settings.json"):
            with self.assertRaises(SettingsStoreError):
                write_monitor_settings({})

    def test_bind_repo_merges_entries(self) -> None:
        bind_repo("codex", "abc", "/work/one")
        bindings = bind_repo("opencode", "s1", "/work/two")
        self.assertEqual(bindings, {"codex:abc": "/work/one", "opencode:s1": "/work/two"})
        self.assertEqual(read_repo_bindings(), bindings)

    def test_blank_bindings_are_ignored_on_read(self) -> None:
        self.state_dir.mkdir(parents=True)
        config.REPO_BINDINGS_FILE.write_text(json.dumps({"codex:a": " ", "codex:b": "/work", "codex:c": 3}), encoding="utf-8")
        self.assertEqual(read_repo_bindings(), {"codex:b": "/work"})


if __name__ == "__main__":
    unittest.main()
