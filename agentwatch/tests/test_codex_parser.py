import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from agentwatch import config
from agentwatch.agent_registry import AgentRegistry
from agentwatch.parsers.platforms.codex.parser import (
    extract_repo_path,
    parse_session_from_filename,
    record_timestamp,
    scan_sessions,
)

SESSION_ID = "0199a1b2-c3d4-7e5f-8a9b-0c1d2e3f4a5b"
BASE_MS = 1_767_225_600_000


class CodexParserTests(unittest.TestCase):
    def setUp(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.root = Path(tmpdir.name) / "sessions"

    def _write_rollout(self, lines: list, name: str = f"rollout-2026-01-01T00-00-00-{SESSION_ID}.jsonl") -> Path:
        path = self.root / "2026" / "01" / "01" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            "\n".join(line if isinstance(line, str) else json.dumps(line) for line in lines) + "\n",
            encoding="utf-8",
        )
        return path

    def test_session_id_from_filename(self) -> None:
        self.assertEqual(parse_session_from_filename(Path(f"rollout-2026-01-01T00-00-00-{SESSION_ID}.jsonl")), SESSION_ID)
        self.assertIsNone(parse_session_from_filename(Path("notes.jsonl")))

    def test_record_timestamp_precedence(self) -> None:
        self.assertEqual(record_timestamp({"ts": 1_767_225_600}, {}, 7), BASE_MS)
        self.assertEqual(record_timestamp({"timestamp": "2026-01-01T00:00:00Z"}, {}, 7), BASE_MS)
        self.assertEqual(record_timestamp({}, {"timestamp": BASE_MS}, 7), BASE_MS)
        self.assertEqual(record_timestamp({"timestamp": "garbage"}, {}, 7), 7)

    def test_repo_path_from_cwd_tag(self) -> None:
        payload = {"message": "<environment_context>\n<cwd>/work/tagged</cwd>\n</environment_context>"}
        self.assertEqual(extract_repo_path({}, payload), "/work/tagged")
        self.assertEqual(extract_repo_path({"cwd": "/work/top"}, {"cwd": "/work/payload"}), "/work/payload")

    def test_rollout_is_folded_in_order(self) -> None:
        self._write_rollout([
            {"type": "session_meta", "timestamp": "2026-01-01T00:00:00.000Z", "payload": {"id": SESSION_ID, "cwd": "/work/repo"}},
            {"type": "event_msg", "timestamp": "2026-01-01T00:00:01.000Z", "payload": {"type": "user_message", "message": "Fix the login bug\nand add tests"}},
            "{truncated line",
            {"type": "response_item", "timestamp": "2026-01-01T00:00:03.000Z", "payload": {"type": "function_call", "name": "shell", "call_id": "call_1"}},
            {"type": "event_msg", "timestamp": "2026-01-01T00:00:02.000Z", "payload": {"type": "agent_reasoning"}},
        ])

        registry = AgentRegistry()
        self.assertEqual(scan_sessions(registry, self.root), 4)
        self.assertEqual(len(registry), 1)
        record = registry.get(f"codex:{SESSION_ID}")
        self.assertEqual(record.state, "running")
        self.assertEqual(record.last_text, "shell: running")
        self.assertEqual(record.last_ts_ms, BASE_MS + 3000)
        self.assertEqual(record.repo_path, "/work/repo")
        self.assertEqual(record.agent_name, "Fix the login bug")
        self.assertEqual(
            [e.ts_ms for e in record.recent_events],
            [BASE_MS + 3000, BASE_MS + 2000, BASE_MS + 1000, BASE_MS],
        )

    def test_only_the_tail_window_is_read(self) -> None:
        first = json.dumps({"type": "event_msg", "timestamp": "2026-01-01T00:00:00Z", "payload": {"type": "task_started"}})
        last = json.dumps({"type": "event_msg", "timestamp": "2026-01-01T00:00:05Z", "payload": {"type": "task_complete"}})
        self._write_rollout([first, last])

        registry = AgentRegistry()
        with patch.object(config, "CODEX_TAIL_BYTES", len(last.encode("utf-8")) + 1):
            self.assertEqual(scan_sessions(registry, self.root), 1)
        record = registry.get(f"codex:{SESSION_ID}")
        self.assertEqual(record.state, "done")
        self.assertEqual(len(record.recent_events), 1)

    def test_file_cap_keeps_newest_logs(self) -> None:
        for index in range(3):
            path = self._write_rollout(
                [{"type": "event_msg", "payload": {"type": "task_started"}}],
                name=f"rollout-2026-01-01T00-00-0{index}-0199a1b2-c3d4-7e5f-8a9b-0c1d2e3f4a5{index}.jsonl",
            )
            mtime = 1_700_000_000 + index
            os.utime(path, (mtime, mtime))

        registry = AgentRegistry()
        with patch.object(config, "MAX_CODEX_FILES", 2):
            scan_sessions(registry, self.root)
        keys = sorted(record.key for record in registry.records())
        self.assertEqual(keys, [
            "codex:0199a1b2-c3d4-7e5f-8a9b-0c1d2e3f4a51",
            "codex:0199a1b2-c3d4-7e5f-8a9b-0c1d2e3f4a52",
        ])

    def test_deeply_nested_line_is_skipped(self) -> None:
        self._write_rollout([
            "[" * 50000,
            {"type": "event_msg", "timestamp": "2026-01-01T00:00:05Z", "payload": {"type": "task_complete"}},
        ])
        registry = AgentRegistry()
        self.assertEqual(scan_sessions(registry, self.root), 1)
        self.assertEqual(registry.get(f"codex:{SESSION_ID}").state, "done")

    def test_unicode_line_separator_inside_message_is_kept(self) -> None:
        line = json.dumps(
            {"type": "event_msg", "timestamp": "2026-01-01T00:00:05Z", "payload": {"type": "agent_message", "message": "a\u2028b"}},
            ensure_ascii=False,
        )
        self._write_rollout([line])
        registry = AgentRegistry()
        self.assertEqual(scan_sessions(registry, self.root), 1)
        self.assertEqual(registry.get(f"codex:{SESSION_ID}").last_text, "a\u2028b")

    def test_missing_root_is_empty(self) -> None:
        self.assertEqual(scan_sessions(AgentRegistry(), self.root / "nope"), 0)


if __name__ == "__main__":
    unittest.main()
