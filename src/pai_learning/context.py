"""Session-start context composition.

At session start the host CLI injects whatever this module prints into the
model's context.  The block is read-only over the memory tree:

- the persistent CORE instructions (``skills/CORE/SKILL.md``; without it
  nothing is injected),
- the active work pointer, when a task is set,
- the newest session summaries,
- a short digest of the last week's ratings and learnings,
- the latest weekly report's recommendations.

Sub-agent sessions get nothing: their parent already has the context.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any

from pai_learning.config import PaiConfig, SynthesisConfig
from pai_learning.ratings import Rating
from pai_learning.store import Learning, SignalStore
from pai_learning.synthesis import analyze_rating_trend, load_latest_weekly_report
from pai_learning.timeutil import display_local

log = logging.getLogger(__name__)

CONTEXT_OPEN = "<system-reminder>"
CONTEXT_CLOSE = "</system-reminder>"
LOADED_MARKER = "✅ Context successfully loaded..."

_MAX_LEARNING_TITLES = 3
_RECOMMENDATIONS_RE = re.compile(r"## Recommendations\n\n(.*?)(?=\n---|\n##|\Z)", re.DOTALL)


def is_subagent_session(cfg: PaiConfig) -> bool:
    return cfg.kiro_agent is not None or cfg.subagent


def core_skill_path(root: Path) -> Path:
    return Path(root) / "skills" / "CORE" / "SKILL.md"


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


def format_active_work(state: dict[str, Any]) -> str:
    if not state.get("current_task"):
        return ""
    context = state.get("context")
    if isinstance(context, list) and context:
        context_text = ", ".join(str(item) for item in context)
    else:
        context_text = "N/A"
    return (
        "\n## 📌 Active Work (from memory)\n"
        f"- **Task:** {state['current_task']}\n"
        f"- **Project:** {state.get('project') or 'N/A'}\n"
        f"- **Started:** {state.get('started_at') or 'N/A'}\n"
        f"- **Context:** {context_text}\n"
        "\n"
        "Consider: Is this session related to the above work? "
        "If so, continue from where you left off.\n"
    )


def format_recent_sessions(store: SignalStore, paths: list[Path]) -> str:
    if not paths:
        return ""
    lines = ["", "## 📜 Recent Sessions"]
    for path in paths:
        lines.append(f"- `memory/history/sessions/{path.parent.name}/{path.name}`")
    lines += [
        "",
        f"Use `cat {store.sessions_dir}/[file]` to review if relevant.",
        "",
    ]
    return "\n".join(lines)


def format_recent_signals(
    ratings: list[Rating],
    learnings: list[Learning],
    cfg: SynthesisConfig | None = None,
    tz_name: str = "",
) -> str:
    cfg = cfg or SynthesisConfig()
    if not ratings and not learnings:
        return ""
    lines = ["", f"## 📊 Recent Signals (last {cfg.window_days} days)"]
    summary = analyze_rating_trend(ratings, cfg, tz_name)
    if summary is not None:
        lines.append(
            f"- **Ratings:** {summary.count} (avg {summary.average}/10, trend {summary.trend})"
        )
    if learnings:
        lines.append(f"- **Learnings:** {len(learnings)}")
        for learning in learnings[:_MAX_LEARNING_TITLES]:
            lines.append(f"  - [{learning.category}] {learning.title}")
    lines.append("")
    return "\n".join(lines)


def format_weekly_recommendations(report_text: str | None) -> str:
    if not report_text:
        return ""
    match = _RECOMMENDATIONS_RE.search(report_text)
    if match is None:
        return ""
    body = match.group(1).strip()
    if not body or body.startswith("*No specific"):
        return ""
    return f"\n## 🧭 Latest Weekly Recommendations\n{body}\n"


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


def build_context(
    cfg: PaiConfig,
    store: SignalStore,
    now: datetime | None = None,
) -> str | None:
    """Compose the injectable context block, or ``None`` without a CORE skill."""
    skill_path = core_skill_path(cfg.dir)
    if not skill_path.exists():
        log.debug("No CORE skill at %s", skill_path)
        return None

    skill_content = skill_path.read_text(encoding="utf-8")
    now = store.current_time(now)
    window = cfg.synthesis.window_days

    memory_state = format_active_work(store.load_active_work())
    recent_sessions = format_recent_sessions(
        store, store.recent_session_files(cfg.synthesis.recent_sessions)
    )
    signals = format_recent_signals(
        store.load_ratings(window, now),
        store.load_learnings(window, now),
        cfg.synthesis,
        store.tz_name,
    )
    weekly = format_weekly_recommendations(load_latest_weekly_report(store))

    stamp = display_local(now)
    if cfg.time_zone:
        stamp = f"{stamp} {cfg.time_zone}"

    return (
        f"{CONTEXT_OPEN}\n"
        "CORE CONTEXT (Auto-loaded at Session Start)\n"
        "\n"
        f"📅 CURRENT DATE/TIME: {stamp}\n"
        "\n"
        f"The following context has been loaded from {skill_path}:\n"
        "\n"
        f"{skill_content}\n"
        f"{memory_state}{recent_sessions}{signals}{weekly}\n"
        "This context is now active for this session. Follow all instructions, "
        "preferences, and guidelines contained above.\n"
        f"{CONTEXT_CLOSE}\n"
        "\n"
        f"{LOADED_MARKER}"
    )
