"""Explicit rating capture.

Users rate the assistant by typing a bare number as their prompt, optionally
followed by a comment::

    7
    8 - good work
    6: needs improvement
    9/10

:func:`parse_rating` decides whether a prompt is such a rating.  It is a pure
text classifier: a leading integer 1-10, an optional separator (``-``,
``:``, ``/`` or whitespace) and free text.  Prompts where the number is a
quantity ("7 files changed") or a label ("step 7") are rejected.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Iterable

from pai_learning.config import VocabularyConfig

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MIN_RATING = 1
MAX_RATING = 10

_RATING_RE = re.compile(r"(10|[1-9])(?!\d)(?:[ \t]*[-:/][ \t]*|[ \t]+)?(.*)")
"""Matched against the whole trimmed prompt.  ``(?!\\d)`` keeps ``0``,
``11`` and ``100`` from being read as ``1``/``10`` plus a comment."""

_UNIT_WORDS: tuple[str, ...] = VocabularyConfig().unit_words


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ParsedRating:
    rating: int
    comment: str = ""


@dataclass(frozen=True, slots=True)
class Rating:
    """One line of ``ratings.jsonl``."""

    timestamp: str
    rating: int
    session_id: str
    comment: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> Rating | None:
        """Build a rating from a decoded log line, or ``None`` if it is unusable."""
        if not isinstance(data, dict):
            return None
        value = data.get("rating")
        timestamp = data.get("timestamp")
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        if not MIN_RATING <= value <= MAX_RATING or not isinstance(timestamp, str):
            return None
        return cls(
            timestamp=timestamp,
            rating=value,
            session_id=str(data.get("session_id") or "unknown"),
            comment=str(data.get("comment") or ""),
        )


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_rating(
    text: str,
    unit_words: Iterable[str] | None = None,
) -> ParsedRating | None:
    """Parse *text* as an explicit rating.

    Returns ``None`` when *text* is not a rating.  Multi-line prompts never
    are: the comment must fit on the same line as the number.
    """
    trimmed = text.strip()
    match = _RATING_RE.fullmatch(trimmed)
    if match is None:
        return None

    number = match.group(1)
    comment = (match.group(2) or "").strip()

    comment_lower = comment.lower()
    words = _UNIT_WORDS if unit_words is None else tuple(unit_words)
    if any(comment_lower.startswith(unit) for unit in words):
        return None

    # Nothing but a separator after the number ("7 -") is not a rating.
    if not comment and trimmed != number:
        return None

    return ParsedRating(rating=int(number), comment=comment)


def rating_feedback(rating: Rating) -> str:
    """Status line echoed to stderr after a rating is recorded."""
    if rating.rating >= 8:
        emoji = "🌟"
    elif rating.rating >= 6:
        emoji = "👍"
    else:
        emoji = "📝"
    suffix = f": {rating.comment}" if rating.comment else ""
    return f"{emoji} Rating {rating.rating}/10 recorded{suffix}"
