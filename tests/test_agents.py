"""Tests for the session -> agent mapping."""

from __future__ import annotations

import json
from pathlib import Path

from pai_learning.agents import AgentSessionStore, resolve_agent


def _resolve(agents: AgentSessionStore, event: str, data: dict, **kwargs) -> str:
    return resolve_agent(agents, "s1", event, data, assistant_name="kiro", **kwargs)


class TestAgentSessionStore:
    def test_missing_file_starts_empty(self, tmp_path: Path) -> None:
        agents = AgentSessionStore.load(tmp_path / "agent-sessions.json")
        assert len(agents) == 0
        assert agents.get("s1", "kiro") == "kiro"

    def test_corrupt_file_starts_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "agent-sessions.json"
        path.write_text("{nope", encoding="utf-8")
        assert len(AgentSessionStore.load(path)) == 0

    def test_save_only_when_dirty(self, tmp_path: Path) -> None:
        path = tmp_path / "agent-sessions.json"
        agents = AgentSessionStore.load(path)
        agents.save()
        assert not path.exists()

        agents.set("s1", "researcher")
        assert agents.dirty
        agents.save()
        assert json.loads(path.read_text(encoding="utf-8")) == {"s1": "researcher"}
        assert not agents.dirty

    def test_setting_same_value_is_clean(self, tmp_path: Path) -> None:
        agents = AgentSessionStore(tmp_path / "m.json", {"s1": "kiro"})
        agents.set("s1", "kiro")
        assert not agents.dirty


class TestResolveAgent:
    def test_task_spawn_sets_subagent(self, tmp_path: Path) -> None:
        agents = AgentSessionStore(tmp_path / "m.json")
        data = {"tool_name": "Task", "tool_input": {"subagent_type": "researcher"}}
        assert _resolve(agents, "PreToolUse", data) == "researcher"
        assert agents.get("s1", "kiro") == "researcher"

    def test_later_events_keep_subagent(self, tmp_path: Path) -> None:
        agents = AgentSessionStore(tmp_path / "m.json", {"s1": "researcher"})
        assert _resolve(agents, "PostToolUse", {"tool_name": "Read"}) == "researcher"
        assert not agents.dirty

    def test_stop_resets_to_assistant(self, tmp_path: Path) -> None:
        agents = AgentSessionStore(tmp_path / "m.json", {"s1": "researcher"})
        assert _resolve(agents, "SubagentStop", {}) == "kiro"
        assert agents.get("s1", "x") == "kiro"

    def test_task_beats_reset(self, tmp_path: Path) -> None:
        agents = AgentSessionStore(tmp_path / "m.json")
        data = {"tool_name": "Task", "tool_input": {"subagent_type": "engineer"}}
        assert _resolve(agents, "Stop", data) == "engineer"

    def test_override(self, tmp_path: Path) -> None:
        agents = AgentSessionStore(tmp_path / "m.json")
        assert _resolve(agents, "PreToolUse", {"agent_type": "x"}, agent_override="pentester") == "pentester"

    def test_payload_agent_type(self, tmp_path: Path) -> None:
        agents = AgentSessionStore(tmp_path / "m.json")
        assert _resolve(agents, "PreToolUse", {"agent_type": "designer"}) == "designer"

    def test_task_without_subagent_type(self, tmp_path: Path) -> None:
        agents = AgentSessionStore(tmp_path / "m.json")
        assert _resolve(agents, "PreToolUse", {"tool_name": "Task", "tool_input": {}}) == "kiro"
        assert not agents.dirty
