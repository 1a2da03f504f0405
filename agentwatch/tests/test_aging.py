import unittest

from agentwatch.agent_registry import AgentRecord
from agentwatch.services.aging import apply_aging


def _record(state: str, text: str | None, ts: int = 0) -> AgentRecord:
    return AgentRecord(key="codex:c1", source="codex", session_id="c1", state=state, last_ts_ms=ts, last_text=text)


class AgingTests(unittest.TestCase):
    def test_recent_activity_is_untouched(self) -> None:
        record = apply_aging(_record("running", "shell: running"), now_ms=20_000)
        self.assertEqual(record.state, "running")

    def test_running_goes_idle_after_threshold(self) -> None:
        record = apply_aging(_record("running", "shell: running"), now_ms=20_001)
        self.assertEqual(record.state, "idle")
        self.assertEqual(record.last_text, "shell: running")

    def test_thinking_text_becomes_idle(self) -> None:
        record = apply_aging(_record("thinking", "Thinking"), now_ms=30_000)
        self.assertEqual((record.state, record.last_text), ("idle", "Idle"))

    def test_long_silence_ends_done(self) -> None:
        record = apply_aging(_record("thinking", "Thinking"), now_ms=90_001)
        self.assertEqual((record.state, record.last_text), ("done", "No recent activity"))

    def test_done_keeps_meaningful_text(self) -> None:
        record = apply_aging(_record("running", "build: completed"), now_ms=90_001)
        self.assertEqual((record.state, record.last_text), ("done", "build: completed"))

    def test_terminal_states_are_not_aged(self) -> None:
        self.assertEqual(apply_aging(_record("error", "boom"), now_ms=500_000).state, "error")
        self.assertEqual(apply_aging(_record("done", None), now_ms=500_000).last_text, None)

    def test_custom_thresholds(self) -> None:
        record = apply_aging(_record("waiting", None), now_ms=11, idle_after_ms=5, done_after_ms=10)
        self.assertEqual((record.state, record.last_text), ("done", "No recent activity"))


if __name__ == "__main__":
    unittest.main()
