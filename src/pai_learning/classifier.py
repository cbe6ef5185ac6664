"""Learning detection and categorisation for assistant responses.

When a session stops, the final assistant response is inspected:

1. **Detection** -- does the text read like a learning (a problem that was
   solved, a root cause, a workaround...)?  At least two distinct
   indicator words are required; single hits are routine narration.
2. **Categorisation** -- SYSTEM (tooling, environment, configuration,
   permissions, credentials) versus ALGORITHM (code, architecture,
   performance, tests, APIs).  SYSTEM only wins on a strict majority; ties
   go to ALGORITHM.
3. **Extraction** -- a short title and a longer insight are scraped from the
   text with an ordered list of patterns.  Best effort only: the first
   pattern that matches wins.

All functions are pure over ``(text, vocabulary)``; the vocabularies live in
:class:`~pai_learning.config.VocabularyConfig`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable

from pai_learning.config import VocabularyConfig

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SYSTEM = "SYSTEM"
ALGORITHM = "ALGORITHM"

CATEGORIES: tuple[str, ...] = (SYSTEM, ALGORITHM)
"""Allowed learning categories, also the directory names under ``LEARNING/``."""

MIN_INDICATORS = 2

TITLE_MAX_CHARS = 100
INSIGHT_MAX_CHARS = 500

_DEFAULT_TITLE = "work-session"

_SUMMARY_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:🎯\s*COMPLETED|\bCOMPLETED:)[:\s]*(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"(?:📋\s*SUMMARY|\bSUMMARY:)[:\s]*(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"(?:learned|discovered|realized|fixed)[:\s]*(.+?)(?:\n|$)", re.IGNORECASE),
)

_INSIGHT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"(?:the )?(?:problem|issue|bug) was[:\s]+(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"(?:root cause|cause)[:\s]+(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"(?:solution|fix|workaround)[:\s]+(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"(?:learned|discovered|realized)[:\s]+(.+?)(?:\n|$)", re.IGNORECASE),
)

_MIN_INSIGHT_MATCH = 20
_MIN_TITLE_LINE = 10
_MIN_PARAGRAPH = 50


# ---------------------------------------------------------------------------
# Keyword counting
# ---------------------------------------------------------------------------


def count_keyword_matches(text: str, keywords: Iterable[str]) -> int:
    """Number of distinct *keywords* that occur anywhere in *text*.

    Case-insensitive substring match: ``"env"`` also hits ``"environment"``.
    """
    lower = text.lower()
    return sum(1 for kw in keywords if kw.lower() in lower)


def has_learning_indicators(
    text: str,
    indicators: Iterable[str] | None = None,
) -> bool:
    if indicators is None:
        indicators = VocabularyConfig().learning_indicators
    return count_keyword_matches(text, indicators) >= MIN_INDICATORS


def classify_learning(
    text: str,
    system_keywords: Iterable[str] | None = None,
    algorithm_keywords: Iterable[str] | None = None,
) -> str | None:
    """Return :data:`SYSTEM`, :data:`ALGORITHM`, or ``None`` if uncategorisable."""
    vocab = VocabularyConfig()
    system_score = count_keyword_matches(
        text, vocab.system_keywords if system_keywords is None else system_keywords
    )
    algorithm_score = count_keyword_matches(
        text, vocab.algorithm_keywords if algorithm_keywords is None else algorithm_keywords
    )

    if system_score == 0 and algorithm_score == 0:
        return None
    return SYSTEM if system_score > algorithm_score else ALGORITHM


# ---------------------------------------------------------------------------
# Decision
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Decision:
    """Where a stopped session's response should be filed.

    ``category`` is ``None`` whenever ``is_learning`` is ``False``.
    """

    is_learning: bool
    category: str | None = None


def decide(text: str, vocab: VocabularyConfig | None = None) -> Decision:
    """Combine detection and categorisation for one response.

    Indicator-positive text that matches neither category vocabulary is
    filed under ``vocab.uncategorized_fallback``; when that is empty (or not
    a known category) the text is treated as not a learning.
    """
    vocab = vocab or VocabularyConfig()
    if not has_learning_indicators(text, vocab.learning_indicators):
        return Decision(False)

    category = classify_learning(text, vocab.system_keywords, vocab.algorithm_keywords)
    if category is None:
        fallback = vocab.uncategorized_fallback.upper()
        if fallback not in CATEGORIES:
            return Decision(False)
        category = fallback
    return Decision(True, category)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def extract_summary(text: str) -> str:
    """Short title for the learning / session file (at most 100 chars)."""
    for pattern in _SUMMARY_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()[:TITLE_MAX_CHARS]

    for line in text.split("\n"):
        if len(line.strip()) > _MIN_TITLE_LINE:
            return line.strip()[:TITLE_MAX_CHARS]

    return _DEFAULT_TITLE


def extract_insight(text: str) -> str:
    """Key insight paragraph (at most 500 chars)."""
    for pattern in _INSIGHT_PATTERNS:
        match = pattern.search(text)
        if match and len(match.group(1)) > _MIN_INSIGHT_MATCH:
            return match.group(1).strip()[:INSIGHT_MAX_CHARS]

    for paragraph in text.split("\n\n"):
        if len(paragraph.strip()) > _MIN_PARAGRAPH:
            return paragraph.strip()[:INSIGHT_MAX_CHARS]

    return text[:INSIGHT_MAX_CHARS]
