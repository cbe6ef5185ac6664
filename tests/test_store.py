"""Tests for the filesystem-backed signal store."""

from __future__ import annotations

import json
import os
from datetime import datetime, timedelta
from pathlib import Path

import pytest

import pai_learning
from pai_learning.classifier import ALGORITHM, SYSTEM
from pai_learning.ratings import Rating
from pai_learning.store import SignalStore, parse_learning_file, slugify
from tests.conftest import MONDAY, make_rating, rating_line, write_ratings_file


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------


class TestRatings:
    def test_missing_log_reads_empty(self, store: SignalStore) -> None:
        assert store.load_ratings(7, MONDAY) == []

    def test_append_then_load(self, store: SignalStore) -> None:
        rating = make_rating(8, MONDAY - timedelta(hours=1), "good")
        store.append_rating(rating)
        assert store.load_ratings(7, MONDAY) == [rating]

    def test_append_is_one_line_per_rating(self, store: SignalStore) -> None:
        store.append_rating(make_rating(8, MONDAY))
        store.append_rating(make_rating(3, MONDAY, "nope"))
        lines = store.ratings_path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert json.loads(lines[1])["comment"] == "nope"

    def test_window_filters_old_ratings(self, store: SignalStore) -> None:
        old = make_rating(2, MONDAY - timedelta(days=8))
        recent = make_rating(9, MONDAY - timedelta(days=6))
        store.append_rating(old)
        store.append_rating(recent)
        assert store.load_ratings(7, MONDAY) == [recent]

    def test_corrupt_lines_are_skipped(self, store: SignalStore) -> None:
        write_ratings_file(
            store,
            [
                "{not json",
                rating_line(7, "2026-01-18T10:00:00", "ok"),
                rating_line(42, "2026-01-18T10:00:00"),
                rating_line("8", "2026-01-18T10:00:00"),
                rating_line(5, "yesterday-ish"),
                "",
                "[1, 2, 3]",
            ],
        )
        ratings = store.load_ratings(7, MONDAY)
        assert [r.rating for r in ratings] == [7]

    def test_offset_timestamps_are_converted(self, store: SignalStore) -> None:
        write_ratings_file(store, [rating_line(6, "2026-01-19T08:00:00Z")])
        assert [r.rating for r in store.load_ratings(7, MONDAY)] == [6]


# ---------------------------------------------------------------------------
# Learnings
# ---------------------------------------------------------------------------


class TestLearnings:
    def test_write_learning_layout(self, store: SignalStore) -> None:
        path = store.write_learning(
            category=SYSTEM,
            summary="Hook path was wrong!",
            insight="The hook used a relative path.",
            response="full response text",
            session_id="abc",
            now=MONDAY,
        )
        assert path.parent == store.learning_dir / SYSTEM / "2026-01"
        assert path.name == "20260119T093000_LEARNING_hook-path-was-wrong.md"
        content = path.read_text(encoding="utf-8")
        assert content.startswith("---\ncapture_type: LEARNING\ncategory: SYSTEM\n")
        assert "timestamp: 2026-01-19 09:30:00" in content
        assert "# Learning: Hook path was wrong!" in content
        assert "## Insight\n\nThe hook used a relative path.\n" in content

    def test_unknown_category_rejected(self, store: SignalStore) -> None:
        with pytest.raises(ValueError):
            store.write_learning(
                category="OTHER", summary="x", insight="y", response="z", now=MONDAY
            )

    def test_name_collision_gets_suffix(self, store: SignalStore) -> None:
        kwargs = dict(category=ALGORITHM, summary="same", insight="i", response="r", now=MONDAY)
        first = store.write_learning(**kwargs)
        second = store.write_learning(**kwargs)
        assert first != second
        assert second.name.endswith("_LEARNING_same-2.md")
        assert first.exists() and second.exists()

    def test_round_trip_through_parser(self, store: SignalStore) -> None:
        path = store.write_learning(
            category=ALGORITHM,
            summary="Query planner",
            insight="Index on (tenant, created) fixed the scan.",
            response="...",
            now=MONDAY,
        )
        learning = parse_learning_file(path, ALGORITHM)
        assert learning is not None
        assert learning.title == "Query planner"
        assert learning.insight == "Index on (tenant, created) fixed the scan."
        assert learning.timestamp == "2026-01-19 09:30:00"

    def test_file_without_front_matter_is_skipped(self, tmp_path: Path) -> None:
        path = tmp_path / "note.md"
        path.write_text("# Learning: no front matter\n", encoding="utf-8")
        assert parse_learning_file(path, SYSTEM) is None

    def test_untitled_default(self, tmp_path: Path) -> None:
        path = tmp_path / "note.md"
        path.write_text("---\ntimestamp: 2026-01-19 09:00:00\n---\n\nbody\n", encoding="utf-8")
        learning = parse_learning_file(path, SYSTEM)
        assert learning is not None
        assert learning.title == "Untitled"
        assert learning.insight == ""

    def test_load_learnings_newest_first_within_window(self, store: SignalStore) -> None:
        store.write_learning(
            category=SYSTEM, summary="older", insight="i", response="r",
            now=MONDAY - timedelta(days=3),
        )
        store.write_learning(
            category=ALGORITHM, summary="newer", insight="i", response="r",
            now=MONDAY - timedelta(hours=2),
        )
        store.write_learning(
            category=ALGORITHM, summary="stale", insight="i", response="r",
            now=MONDAY - timedelta(days=10),
        )
        titles = [item.title for item in store.load_learnings(7, MONDAY)]
        assert titles == ["newer", "older"]

    def test_only_two_newest_months_are_scanned(self, store: SignalStore) -> None:
        store.write_learning(
            category=SYSTEM, summary="november", insight="i", response="r",
            now=datetime(2025, 11, 30, 12, 0),
        )
        store.write_learning(
            category=SYSTEM, summary="december", insight="i", response="r",
            now=datetime(2025, 12, 31, 12, 0),
        )
        store.write_learning(
            category=SYSTEM, summary="january", insight="i", response="r",
            now=datetime(2026, 1, 2, 12, 0),
        )
        found = store.load_learnings(days=365, now=datetime(2026, 1, 3))
        assert [item.title for item in found] == ["january", "december"]

    def test_low_rating_learning(self, store: SignalStore) -> None:
        rating = Rating("2026-01-19T09:30:00", 3, "abc", "")
        path = store.write_low_rating_learning(rating, MONDAY)
        assert path.parent == store.learning_dir / ALGORITHM / "2026-01"
        assert path.name == "20260119T093000_RATING_3-needs-improvement.md"
        content = path.read_text(encoding="utf-8")
        assert "capture_type: LOW_RATING" in content
        assert "(No comment provided)" in content


# ---------------------------------------------------------------------------
# Sessions, state and events
# ---------------------------------------------------------------------------


class TestSessions:
    def test_write_session_summary(self, store: SignalStore) -> None:
        path = store.write_session_summary(
            summary="Updated docs", response="x" * 6000, session_id="s1", now=MONDAY
        )
        assert path.parent == store.sessions_dir / "2026-01"
        content = path.read_text(encoding="utf-8")
        assert "# SESSION: Updated docs" in content
        assert "x" * 5001 not in content

    def test_recent_session_files_by_mtime(self, store: SignalStore) -> None:
        paths = [
            store.write_session_summary(summary=f"s{i}", response="r", now=MONDAY)
            for i in range(4)
        ]
        for age, path in enumerate(reversed(paths)):
            stamp = 1_700_000_000 - age * 60
            os.utime(path, (stamp, stamp))
        assert store.recent_session_files(3) == list(reversed(paths))[:3]

    def test_active_work_missing_or_corrupt(self, store: SignalStore) -> None:
        assert store.load_active_work() == {}
        store.active_work_path.parent.mkdir(parents=True)
        store.active_work_path.write_text("{oops", encoding="utf-8")
        assert store.load_active_work() == {}

    def test_append_event(self, store: SignalStore) -> None:
        path = store.append_event({"hook_event_type": "Stop"}, MONDAY)
        assert path == store.events_dir / "2026-01" / "2026-01-19_all-events.jsonl"
        store.append_event({"hook_event_type": "PreToolUse"}, MONDAY)
        lines = path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["hook_event_type"] for line in lines] == ["Stop", "PreToolUse"]


class TestSlugify:
    def test_basic(self) -> None:
        assert slugify("Fixed: the Hook's PATH!") == "fixed-the-hook-s-path"

    def test_truncated(self) -> None:
        assert len(slugify("a" * 200)) == 60


def test_package_docs_name_the_memory_dir(store: SignalStore) -> None:
    assert f"``~/.claude/{store.memory_dir.name}``" in pai_learning.__doc__
