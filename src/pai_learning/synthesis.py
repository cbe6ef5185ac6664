"""Weekly learning synthesis.

Aggregates the last week of signals into one Markdown report per week:

- **Rating summary** -- count, mean, lowest rating (and its comment) and a
  trend computed by comparing the means of the earlier and later halves of
  the time-sorted ratings.
- **Recurring patterns** -- keywords that show up in at least two
  learnings.
- **Recommendations** -- at most five, rating-based first, then pattern
  based, then category imbalance.

Week numbering is the home-grown formula the report archive has always
used (``ceil((day_of_year_index + weekday_of_jan1 + 1) / 7)`` with Sunday as
weekday 0); it is *not* ISO-8601 and must stay stable so existing report
paths keep matching.

Note the deliberate mismatch between the report's stated period (the
calendar week) and the data aggregated (a rolling window ending "now").
Reports generated mid-week therefore cover part of the previous week.

Usage::

    from pai_learning.store import SignalStore
    from pai_learning.synthesis import generate_weekly_report

    report = generate_weekly_report(SignalStore(root), force=True)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Iterable

from pai_learning.classifier import ALGORITHM, SYSTEM
from pai_learning.config import SynthesisConfig, VocabularyConfig
from pai_learning.ratings import Rating
from pai_learning.store import Learning, SignalStore
from pai_learning.timeutil import parse_timestamp

log = logging.getLogger(__name__)

TREND_UP = "up"
TREND_STABLE = "stable"
TREND_DOWN = "down"

_TREND_ARROWS: dict[str, str] = {TREND_UP: "↑", TREND_DOWN: "↓", TREND_STABLE: "→"}

_MONDAY = 1  # Sunday-based weekday index


# ---------------------------------------------------------------------------
# Report types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RatingsSummary:
    count: int
    average: float
    lowest: int
    lowest_comment: str
    trend: str = TREND_STABLE


@dataclass(frozen=True, slots=True)
class Pattern:
    keyword: str
    count: int


@dataclass(slots=True)
class WeeklyReport:
    """One week's synthesis.  Written once, superseded only when forced."""

    week_number: int
    year: int
    start_date: str
    end_date: str
    ratings_summary: RatingsSummary | None
    patterns: list[Pattern] = field(default_factory=list)
    learnings_count: dict[str, int] = field(
        default_factory=lambda: {"system": 0, "algorithm": 0}
    )
    recommendations: list[str] = field(default_factory=list)

    def to_markdown(self, generated: str) -> str:
        week = f"{self.week_number:02d}"
        lines = [
            "---",
            "type: weekly-synthesis",
            f"year: {self.year}",
            f"week: {self.week_number}",
            f"generated: {generated}",
            "---",
            "",
            "# Weekly Learning Synthesis",
            "",
            f"**Week:** {self.year}-W{week}",
            f"**Period:** {self.start_date} to {self.end_date}",
            "",
            "## Rating Summary",
            "",
        ]

        summary = self.ratings_summary
        if summary is not None:
            lines += [
                f"- **Count:** {summary.count} ratings",
                f"- **Average:** {summary.average} / 10",
                f"- **Lowest:** {summary.lowest} ({summary.lowest_comment})",
                f"- **Trend:** {_TREND_ARROWS[summary.trend]} {summary.trend}",
            ]
        else:
            lines.append("*No ratings this week*")

        lines += [
            "",
            "## Learning Summary",
            "",
            f"- **SYSTEM:** {self.learnings_count['system']} learnings",
            f"- **ALGORITHM:** {self.learnings_count['algorithm']} learnings",
            "",
            "## Recurring Patterns",
            "",
        ]
        if self.patterns:
            lines += [f"- **{p.keyword}:** appeared {p.count} times" for p in self.patterns]
        else:
            lines.append("*No recurring patterns detected*")

        lines += ["", "## Recommendations", ""]
        if self.recommendations:
            lines += [f"{i}. {rec}" for i, rec in enumerate(self.recommendations, start=1)]
        else:
            lines.append("*No specific recommendations*")

        lines += ["", "---", "", "*Auto-generated by PAI Learning System*", ""]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Week arithmetic
# ---------------------------------------------------------------------------


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def _weekday_sun0(value: date) -> int:
    """Weekday with Sunday = 0 ... Saturday = 6."""
    return (value.weekday() + 1) % 7


def week_number(value: date) -> int:
    """Week of the year for *value* using the report archive's formula."""
    day = _as_date(value)
    jan1 = date(day.year, 1, 1)
    days = (day - jan1).days
    return math.ceil((days + _weekday_sun0(jan1) + 1) / 7)


def week_date_range(year: int, week: int) -> tuple[date, date]:
    """Sunday-to-Saturday calendar range for (*year*, *week*)."""
    jan1 = date(year, 1, 1)
    start = jan1 + timedelta(days=(week - 1) * 7 - _weekday_sun0(jan1))
    return start, start + timedelta(days=6)


def report_month(year: int, week: int) -> int:
    """Month used for the report's ``YYYY-MM`` directory.

    Day ``week * 7`` of the year; for week 53 this rolls into January of the
    next year while the directory keeps *year*.
    """
    return (date(year, 1, 1) + timedelta(days=week * 7 - 1)).month


# ---------------------------------------------------------------------------
# Analysis
# ---------------------------------------------------------------------------


def _round1(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def _mean(values: list[int]) -> float:
    return sum(values) / len(values)


def _sort_key(rating: Rating, tz_name: str = "") -> tuple[int, datetime | str]:
    parsed = parse_timestamp(rating.timestamp, tz_name)
    if parsed is None:
        return (1, rating.timestamp)
    return (0, parsed)


def compute_trend(
    values: list[int],
    *,
    delta: float = 0.5,
    min_count: int = 4,
) -> str:
    """Compare the means of the earlier and later halves of *values*.

    *values* must already be in time order.  The split is at ``len // 2``
    so an odd element lands in the later half.  The difference must exceed
    *delta* strictly.
    """
    if len(values) < min_count:
        return TREND_STABLE
    mid = len(values) // 2
    first_avg = _mean(values[:mid])
    second_avg = _mean(values[mid:])
    if second_avg - first_avg > delta:
        return TREND_UP
    if first_avg - second_avg > delta:
        return TREND_DOWN
    return TREND_STABLE


def analyze_rating_trend(
    ratings: Iterable[Rating],
    cfg: SynthesisConfig | None = None,
    tz_name: str = "",
) -> RatingsSummary | None:
    """Summarise *ratings* in time order.

    Offset-aware timestamps are ordered as wall-clock time in *tz_name*, the
    same zone the store used to window them.
    """
    cfg = cfg or SynthesisConfig()
    ordered = sorted(ratings, key=lambda r: _sort_key(r, tz_name))
    if not ordered:
        return None

    lowest = ordered[0]
    for rating in ordered:
        if rating.rating < lowest.rating:
            lowest = rating

    values = [r.rating for r in ordered]
    return RatingsSummary(
        count=len(ordered),
        average=_round1(_mean(values)),
        lowest=lowest.rating,
        lowest_comment=lowest.comment or "(no comment)",
        trend=compute_trend(
            values, delta=cfg.trend_delta, min_count=cfg.min_ratings_for_trend
        ),
    )


def extract_patterns(
    learnings: Iterable[Learning],
    keywords: Iterable[str] | None = None,
    *,
    min_count: int = 2,
    limit: int = 5,
) -> list[Pattern]:
    """Keywords mentioned by at least *min_count* learnings, most frequent first.

    Each learning counts at most once per keyword.  Ties keep vocabulary
    order.
    """
    vocabulary = tuple(VocabularyConfig().pattern_keywords if keywords is None else keywords)
    counts: dict[str, int] = {}
    for learning in learnings:
        text = f"{learning.title} {learning.insight}".lower()
        for word in vocabulary:
            if word in text:
                counts[word] = counts.get(word, 0) + 1

    patterns = [Pattern(word, count) for word, count in counts.items() if count >= min_count]
    patterns.sort(key=lambda p: p.count, reverse=True)
    return patterns[:limit]


def count_categories(learnings: Iterable[Learning]) -> dict[str, int]:
    learnings = list(learnings)
    return {
        "system": sum(1 for item in learnings if item.category == SYSTEM),
        "algorithm": sum(1 for item in learnings if item.category == ALGORITHM),
    }


def generate_recommendations(
    summary: RatingsSummary | None,
    patterns: list[Pattern],
    learnings: Iterable[Learning],
    cfg: SynthesisConfig | None = None,
) -> list[str]:
    """Ordered recommendations, truncated after assembly."""
    cfg = cfg or SynthesisConfig()
    recommendations: list[str] = []

    if summary is not None:
        if summary.average < cfg.low_average:
            recommendations.append(
                "Overall ratings are low - review recent feedback for common issues"
            )
        if summary.trend == TREND_DOWN:
            recommendations.append(
                "Ratings are trending downward - investigate recent changes"
            )
        if summary.lowest < cfg.low_rating:
            recommendations.append(
                f'Address the low-rated issue: "{summary.lowest_comment}"'
            )

    for pattern in patterns[:3]:
        if pattern.count >= cfg.recurring_pattern_count:
            recommendations.append(
                f"Recurring {pattern.keyword} issues ({pattern.count}x) - consider creating a checklist"
            )

    counts = count_categories(learnings)
    if counts["system"] > counts["algorithm"] * 2:
        recommendations.append(
            "Many SYSTEM learnings - environment setup may need documentation"
        )
    if counts["algorithm"] > counts["system"] * 2:
        recommendations.append(
            "Many ALGORITHM learnings - consider code review practices"
        )

    return recommendations[: cfg.max_recommendations]


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def weekly_report_path(store: SignalStore, year: int, week: int) -> Path:
    return store.report_path(year, week, report_month(year, week))


def weekly_report_exists(store: SignalStore, year: int, week: int) -> bool:
    return weekly_report_path(store, year, week).exists()


def should_generate_weekly_report(store: SignalStore, now: datetime | None = None) -> bool:
    """Monday trigger: true on Mondays when this week has no report yet."""
    now = store.current_time(now)
    if _weekday_sun0(now) != _MONDAY:
        return False
    return not weekly_report_exists(store, now.year, week_number(now))


def build_weekly_report(
    ratings: list[Rating],
    learnings: list[Learning],
    *,
    year: int,
    week: int,
    vocab: VocabularyConfig | None = None,
    cfg: SynthesisConfig | None = None,
    tz_name: str = "",
) -> WeeklyReport:
    """Pure aggregation step of :func:`generate_weekly_report`."""
    vocab = vocab or VocabularyConfig()
    cfg = cfg or SynthesisConfig()

    summary = analyze_rating_trend(ratings, cfg, tz_name)
    patterns = extract_patterns(
        learnings,
        vocab.pattern_keywords,
        min_count=cfg.min_pattern_count,
        limit=cfg.max_patterns,
    )
    start, end = week_date_range(year, week)
    return WeeklyReport(
        week_number=week,
        year=year,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        ratings_summary=summary,
        patterns=patterns,
        learnings_count=count_categories(learnings),
        recommendations=generate_recommendations(summary, patterns, learnings, cfg),
    )


def generate_weekly_report(
    store: SignalStore,
    *,
    now: datetime | None = None,
    force: bool = False,
    vocab: VocabularyConfig | None = None,
    cfg: SynthesisConfig | None = None,
) -> WeeklyReport | None:
    """Build and save this week's report.

    Returns ``None`` without writing when the report already exists and
    *force* is false.  With *force* the existing report is overwritten.
    """
    cfg = cfg or SynthesisConfig()
    now = store.current_time(now)
    year = now.year
    week = week_number(now)

    path = weekly_report_path(store, year, week)
    if not force and path.exists():
        log.debug("Weekly report %s already exists", path)
        return None

    report = build_weekly_report(
        store.load_ratings(cfg.window_days, now),
        store.load_learnings(cfg.window_days, now),
        year=year,
        week=week,
        vocab=vocab,
        cfg=cfg,
        tz_name=store.tz_name,
    )

    path.parent.mkdir(parents=True, exist_ok=True)
    generated = datetime.now(timezone.utc).isoformat(timespec="seconds")
    path.write_text(report.to_markdown(generated), encoding="utf-8")
    log.info("Weekly report written to %s", path)
    return report


def load_latest_weekly_report(store: SignalStore) -> str | None:
    """Text of the most recent weekly report, if any."""
    path = store.latest_report_path()
    if path is None:
        return None
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        log.warning("Could not read weekly report %s: %s", path, exc)
        return None
