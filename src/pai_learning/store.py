"""Filesystem-backed signal store.

Everything the hooks persist lives below ``<root>/memory``::

    LEARNING/SIGNALS/ratings.jsonl                     append-only rating log
    LEARNING/{SYSTEM,ALGORITHM}/<YYYY-MM>/<ts>_LEARNING_<slug>.md
    LEARNING/ALGORITHM/<YYYY-MM>/<ts>_RATING_<n>-needs-improvement.md
    LEARNING/SYNTHESIS/<YYYY-MM>/week-<NN>.md         weekly reports
    history/sessions/<YYYY-MM>/<ts>_SESSION_<slug>.md  non-learning sessions
    history/raw-outputs/<YYYY-MM>/<date>_all-events.jsonl
    state/active-work.json                             current task pointer

Writes are single-shot with no locking (one writer assumed).  Reads are
corruption tolerant: a bad JSON line or a Markdown file without front matter
is skipped, never fatal.  Missing files and directories read as "no data".

All methods are synchronous; async hook handlers run them through
:func:`anyio.to_thread.run_sync`.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from pai_learning.classifier import ALGORITHM, CATEGORIES
from pai_learning.ratings import Rating
from pai_learning.timeutil import (
    display_local,
    file_stamp,
    local_now,
    parse_timestamp,
    year_month,
)

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_MONTH_DIR_RE = re.compile(r"^\d{4}-\d{2}$")
_FRONT_MATTER_RE = re.compile(r"^---\n(.*?)\n---", re.DOTALL)
_TIMESTAMP_RE = re.compile(r"timestamp:\s*(.+)")
_TITLE_RE = re.compile(r"^#\s*Learning:\s*(.+)$", re.MULTILINE)
_INSIGHT_RE = re.compile(r"## Insight\n\n(.*?)(?=\n##|\Z)", re.DOTALL)

_SLUG_MAX_CHARS = 60
_RECENT_MONTHS = 2
"""Only the newest N ``YYYY-MM`` partitions are scanned on read."""

_LEARNING_CONTEXT_CHARS = 3000
_SESSION_BODY_CHARS = 5000


def slugify(text: str, max_chars: int = _SLUG_MAX_CHARS) -> str:
    """Lowercase kebab-case slug used in file names."""
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:max_chars]


# ---------------------------------------------------------------------------
# Learning record
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Learning:
    """A learning document read back from disk."""

    filepath: Path
    category: str
    timestamp: str
    title: str
    insight: str
    full_content: str


def parse_learning_file(path: Path, category: str) -> Learning | None:
    """Parse one learning document; ``None`` when it has no front matter."""
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        log.debug("Skipping unreadable learning %s: %s", path, exc)
        return None

    front = _FRONT_MATTER_RE.match(content)
    if front is None:
        return None

    ts_match = _TIMESTAMP_RE.search(front.group(1))
    title_match = _TITLE_RE.search(content)
    insight_match = _INSIGHT_RE.search(content)

    return Learning(
        filepath=path,
        category=category,
        timestamp=ts_match.group(1).strip() if ts_match else "",
        title=title_match.group(1).strip() if title_match else "Untitled",
        insight=insight_match.group(1).strip() if insight_match else "",
        full_content=content,
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class SignalStore:
    """Read/write access to the persisted signals under ``root / "memory"``.

    Parameters
    ----------
    root:
        The assistant's home directory (``PAI_DIR``).
    tz_name:
        Time zone used to interpret stored local timestamps and to derive
        file-name stamps.  Empty means system local time.
    """

    def __init__(self, root: Path, tz_name: str = "") -> None:
        self.root = Path(root)
        self.tz_name = tz_name
        self.memory_dir = self.root / "memory"
        self.learning_dir = self.memory_dir / "LEARNING"
        self.ratings_path = self.learning_dir / "SIGNALS" / "ratings.jsonl"
        self.synthesis_dir = self.learning_dir / "SYNTHESIS"
        self.sessions_dir = self.memory_dir / "history" / "sessions"
        self.events_dir = self.memory_dir / "history" / "raw-outputs"
        self.active_work_path = self.memory_dir / "state" / "active-work.json"

    def current_time(self, now: datetime | None = None) -> datetime:
        """*now* if given, else the current local time in the store's zone."""
        return now if now is not None else local_now(self.tz_name)

    def _cutoff(self, days: int, now: datetime | None) -> datetime:
        return self.current_time(now) - timedelta(days=days)

    # ------------------------------------------------------------------
    # Ratings
    # ------------------------------------------------------------------

    def append_rating(self, rating: Rating) -> None:
        """Append *rating* as one JSON line to the rating log."""
        self.ratings_path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(rating.to_dict(), ensure_ascii=False) + "\n"
        with self.ratings_path.open("a", encoding="utf-8") as fh:
            fh.write(line)

    def load_ratings(self, days: int = 7, now: datetime | None = None) -> list[Rating]:
        """Ratings from the last *days* days, in log order."""
        if not self.ratings_path.exists():
            return []

        cutoff = self._cutoff(days, now)
        ratings: list[Rating] = []
        skipped = 0
        with self.ratings_path.open("r", encoding="utf-8", errors="replace") as fh:
            for raw_line in fh:
                raw_line = raw_line.strip()
                if not raw_line:
                    continue
                try:
                    rating = Rating.from_dict(json.loads(raw_line))
                except json.JSONDecodeError:
                    rating = None
                if rating is None:
                    skipped += 1
                    continue
                when = parse_timestamp(rating.timestamp, self.tz_name)
                if when is None:
                    skipped += 1
                    continue
                if when >= cutoff:
                    ratings.append(rating)

        if skipped:
            log.debug("Skipped %d malformed rating lines in %s", skipped, self.ratings_path)
        return ratings

    # ------------------------------------------------------------------
    # Learning documents
    # ------------------------------------------------------------------

    def _month_dirs(self, base: Path) -> list[Path]:
        """``YYYY-MM`` subdirectories of *base*, newest first."""
        if not base.is_dir():
            return []
        dirs = [d for d in base.iterdir() if d.is_dir() and _MONTH_DIR_RE.match(d.name)]
        return sorted(dirs, key=lambda d: d.name, reverse=True)

    def _create_exclusive(self, path: Path, content: str) -> Path:
        """Write *content* to *path* without clobbering an existing file.

        File names only have one-second resolution, so two captures with the
        same summary in the same second collide.  The collision is logged and
        a numeric suffix is added instead of overwriting.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        candidate = path
        attempt = 1
        while True:
            try:
                with candidate.open("x", encoding="utf-8") as fh:
                    fh.write(content)
                return candidate
            except FileExistsError:
                attempt += 1
                if attempt == 2:
                    log.warning("File name collision for %s, adding a suffix", path.name)
                candidate = path.with_name(f"{path.stem}-{attempt}{path.suffix}")

    def learning_month_dir(self, category: str, now: datetime | None = None) -> Path:
        return self.learning_dir / category / year_month(self.current_time(now))

    def write_learning(
        self,
        *,
        category: str,
        summary: str,
        insight: str,
        response: str,
        session_id: str = "unknown",
        now: datetime | None = None,
    ) -> Path:
        """Write one LEARNING document and return its path."""
        if category not in CATEGORIES:
            raise ValueError(f"Unknown learning category: {category!r}")
        now = self.current_time(now)
        name = f"{file_stamp(now, self.tz_name)}_LEARNING_{slugify(summary)}.md"
        content = (
            "---\n"
            "capture_type: LEARNING\n"
            f"category: {category}\n"
            f"timestamp: {display_local(now)}\n"
            f"session_id: {session_id}\n"
            "---\n"
            "\n"
            f"# Learning: {summary}\n"
            "\n"
            f"**Date:** {now:%Y-%m-%d}\n"
            f"**Category:** {category}\n"
            f"**Session:** {session_id}\n"
            "\n"
            "## Insight\n"
            "\n"
            f"{insight}\n"
            "\n"
            "## Full Context\n"
            "\n"
            f"{response[:_LEARNING_CONTEXT_CHARS]}\n"
            "\n"
            "---\n"
            "\n"
            "*Auto-captured by PAI Learning System*\n"
        )
        return self._create_exclusive(self.learning_month_dir(category, now) / name, content)

    def write_low_rating_learning(self, rating: Rating, now: datetime | None = None) -> Path:
        """Write the ALGORITHM follow-up document for a low rating."""
        now = self.current_time(now)
        name = f"{file_stamp(now, self.tz_name)}_RATING_{rating.rating}-needs-improvement.md"
        content = (
            "---\n"
            "capture_type: LOW_RATING\n"
            f"timestamp: {rating.timestamp}\n"
            f"session_id: {rating.session_id}\n"
            f"rating: {rating.rating}\n"
            "---\n"
            "\n"
            f"# Low Rating Alert: {rating.rating}/10\n"
            "\n"
            "## User Feedback\n"
            f"{rating.comment or '(No comment provided)'}\n"
            "\n"
            "## Action Required\n"
            "Review the recent work in this session to identify what went wrong.\n"
            "\n"
            "---\n"
            "\n"
            "*Auto-captured by ExplicitRatingCapture hook*\n"
        )
        return self._create_exclusive(self.learning_month_dir(ALGORITHM, now) / name, content)

    def load_learnings(self, days: int = 7, now: datetime | None = None) -> list[Learning]:
        """Learnings from the last *days* days, newest first.

        Only the two most recent month partitions per category are read.
        """
        cutoff = self._cutoff(days, now)
        learnings: list[tuple[datetime, Learning]] = []

        for category in CATEGORIES:
            for month_dir in self._month_dirs(self.learning_dir / category)[:_RECENT_MONTHS]:
                for path in sorted(month_dir.glob("*.md"), reverse=True):
                    learning = parse_learning_file(path, category)
                    if learning is None:
                        continue
                    when = parse_timestamp(learning.timestamp, self.tz_name)
                    if when is not None and when >= cutoff:
                        learnings.append((when, learning))

        learnings.sort(key=lambda pair: pair[0], reverse=True)
        return [learning for _, learning in learnings]

    # ------------------------------------------------------------------
    # Session summaries
    # ------------------------------------------------------------------

    def write_session_summary(
        self,
        *,
        summary: str,
        response: str,
        session_id: str = "unknown",
        now: datetime | None = None,
    ) -> Path:
        """Write a non-learning session summary and return its path."""
        now = self.current_time(now)
        name = f"{file_stamp(now, self.tz_name)}_SESSION_{slugify(summary)}.md"
        content = (
            "---\n"
            "capture_type: SESSION\n"
            f"timestamp: {display_local(now)}\n"
            f"session_id: {session_id}\n"
            "executor: main\n"
            "---\n"
            "\n"
            f"# SESSION: {summary}\n"
            "\n"
            f"{response[:_SESSION_BODY_CHARS]}\n"
            "\n"
            "---\n"
            "\n"
            "*Captured by PAI History System*\n"
        )
        return self._create_exclusive(self.sessions_dir / year_month(now) / name, content)

    def recent_session_files(self, limit: int = 3) -> list[Path]:
        """Newest session summaries by modification time."""
        files: list[tuple[float, Path]] = []
        for month_dir in self._month_dirs(self.sessions_dir)[:_RECENT_MONTHS]:
            for path in month_dir.glob("*.md"):
                try:
                    files.append((path.stat().st_mtime, path))
                except OSError:
                    continue
        files.sort(key=lambda pair: pair[0], reverse=True)
        return [path for _, path in files[:limit]]

    # ------------------------------------------------------------------
    # Active work state
    # ------------------------------------------------------------------

    def load_active_work(self) -> dict[str, Any]:
        """The current task pointer, or ``{}`` when absent or unreadable."""
        if not self.active_work_path.exists():
            return {}
        try:
            state = json.loads(self.active_work_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            log.debug("Ignoring unreadable active-work state: %s", exc)
            return {}
        return state if isinstance(state, dict) else {}

    # ------------------------------------------------------------------
    # Raw event log
    # ------------------------------------------------------------------

    def events_path(self, now: datetime | None = None) -> Path:
        now = self.current_time(now)
        return self.events_dir / year_month(now) / f"{now:%Y-%m-%d}_all-events.jsonl"

    def append_event(self, event: dict[str, Any], now: datetime | None = None) -> Path:
        """Append a captured hook event to today's raw event log."""
        path = self.events_path(now)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(event, ensure_ascii=False, default=str) + "\n")
        return path

    # ------------------------------------------------------------------
    # Weekly reports
    # ------------------------------------------------------------------

    def report_path(self, year: int, week: int, month: int) -> Path:
        return self.synthesis_dir / f"{year}-{month:02d}" / f"week-{week:02d}.md"

    def latest_report_path(self) -> Path | None:
        """Newest ``week-NN.md`` in the newest month that has one."""
        for month_dir in self._month_dirs(self.synthesis_dir):
            reports = sorted(month_dir.glob("week-*.md"), key=lambda p: p.name, reverse=True)
            if reports:
                return reports[0]
        return None
