"""Shared fixtures and helpers for the pai_learning test suite."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import pytest

from pai_learning.config import PaiConfig, get_config
from pai_learning.ratings import Rating
from pai_learning.store import SignalStore

_ENV_NAMES = (
    "KIRO_DIR", "TIME_ZONE", "DA", "SUBAGENT", "KIRO_AGENT",
    "PAI_DIR", "PAI_TIME_ZONE", "PAI_ASSISTANT_NAME", "PAI_SUBAGENT",
    "PAI_KIRO_AGENT", "PAI_AGENT", "PAI_DEBUG", "PAI_OBSERVABILITY_URL",
)

# Monday of week 04/2026 (the week runs Sunday 18th to Saturday 24th).
MONDAY = datetime(2026, 1, 19, 9, 30, 0)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the configuration at a temp home and rebuild it.

    Every environment variable the config reads is cleared first so tests
    never pick up the developer's real ``~/.claude``.
    """
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    home = tmp_path / "claude"
    home.mkdir()
    monkeypatch.setenv("PAI_DIR", str(home))
    monkeypatch.setenv("PAI_TIME_ZONE", "UTC")
    get_config(reload=True)
    yield home  # type: ignore[misc]
    get_config(reload=True)


@pytest.fixture
def cfg(root: Path) -> PaiConfig:
    return get_config()


@pytest.fixture
def store(tmp_path: Path) -> SignalStore:
    """A SignalStore over an empty temp directory, UTC for stable stamps."""
    return SignalStore(tmp_path / "home", "UTC")


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def make_rating(
    value: int,
    when: datetime,
    comment: str = "",
    session_id: str = "sess-1",
) -> Rating:
    return Rating(
        timestamp=when.strftime("%Y-%m-%dT%H:%M:%S"),
        rating=value,
        session_id=session_id,
        comment=comment,
    )


def write_ratings_file(store: SignalStore, lines: list[str]) -> None:
    """Write raw lines (valid or not) to the rating log."""
    store.ratings_path.parent.mkdir(parents=True, exist_ok=True)
    store.ratings_path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def rating_line(value: object, timestamp: str, comment: str = "") -> str:
    return json.dumps(
        {"timestamp": timestamp, "rating": value, "session_id": "s", "comment": comment}
    )


def write_core_skill(root: Path, text: str = "# CORE\n\nBe concise.") -> Path:
    path = root / "skills" / "CORE" / "SKILL.md"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
