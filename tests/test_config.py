"""Tests for environment-driven configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from pai_learning.config import PaiConfig, get_config
from pai_learning.outcome import EMPTY, FAILED, OK, Outcome


class TestDefaults:
    def test_dir_is_expanded(self) -> None:
        assert PaiConfig().dir == Path("~/.claude").expanduser()

    def test_defaults(self) -> None:
        cfg = PaiConfig()
        assert cfg.observability_url == "http://localhost:4000/events"
        assert cfg.assistant_name == "kiro"
        assert cfg.synthesis.window_days == 7
        assert cfg.vocabulary.uncategorized_fallback == "ALGORITHM"


class TestEnvironment:
    def test_prefixed_values(self, root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PAI_ASSISTANT_NAME", "atlas")
        monkeypatch.setenv("PAI_RELAY_TIMEOUT", "1.5")
        monkeypatch.setenv("PAI_DEBUG", "true")
        cfg = get_config(reload=True)
        assert cfg.dir == root
        assert cfg.assistant_name == "atlas"
        assert cfg.relay_timeout == 1.5
        assert cfg.debug is True

    def test_nested_sections(self, root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PAI_SYNTHESIS__WINDOW_DAYS", "14")
        monkeypatch.setenv("PAI_VOCABULARY__PATTERN_KEYWORDS", "hook, mcp ,,api")
        cfg = get_config(reload=True)
        assert cfg.synthesis.window_days == 14
        assert cfg.vocabulary.pattern_keywords == ("hook", "mcp", "api")

    def test_legacy_names(self, root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("PAI_DIR")
        monkeypatch.setenv("KIRO_DIR", str(root / "legacy"))
        monkeypatch.setenv("DA", "legacy-assistant")
        monkeypatch.setenv("SUBAGENT", "1")
        cfg = get_config(reload=True)
        assert cfg.dir == root / "legacy"
        assert cfg.assistant_name == "legacy-assistant"
        assert cfg.subagent is True

    def test_kiro_agent_presence(self, root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        assert get_config(reload=True).kiro_agent is None
        monkeypatch.setenv("KIRO_AGENT", "")
        assert get_config(reload=True).kiro_agent == ""
        monkeypatch.setenv("KIRO_AGENT", "researcher")
        assert get_config(reload=True).kiro_agent == "researcher"

    def test_prefixed_wins_over_legacy(self, root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DA", "legacy")
        monkeypatch.setenv("PAI_ASSISTANT_NAME", "modern")
        assert get_config(reload=True).assistant_name == "modern"

    def test_cached_until_reload(self, root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_config()
        monkeypatch.setenv("PAI_ASSISTANT_NAME", "changed")
        assert get_config() is first
        assert get_config(reload=True).assistant_name == "changed"


class TestOutcome:
    def test_constructors(self) -> None:
        assert Outcome.ok("done", "out") == Outcome(OK, "done", "out")
        assert Outcome.empty("nothing").status == EMPTY
        err = RuntimeError("boom")
        failed = Outcome.failed("boom", err)
        assert failed.status == FAILED
        assert failed.error is err
        assert not failed.is_ok
        assert Outcome.ok().is_ok
