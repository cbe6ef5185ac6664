"""pai_learning -- signal capture and weekly synthesis for AI coding sessions.

The lifecycle hooks turn what happens in a session into files under
``~/.claude/memory``: explicit ratings, categorised learnings, session
summaries and a raw event log.  Once a week the signals are folded into a
markdown report whose recommendations are fed back into the next session.

Quick start::

    from pai_learning import SignalStore, generate_weekly_report

    store = SignalStore(Path("~/.claude").expanduser())
    report = generate_weekly_report(store, force=True)

For lower-level access, import from submodules::

    from pai_learning.ratings import parse_rating, Rating
    from pai_learning.classifier import decide, classify_learning
    from pai_learning.synthesis import analyze_rating_trend, extract_patterns
"""

from __future__ import annotations

__version__ = "0.1.0"

# Public API exports
from pai_learning.classifier import ALGORITHM, CATEGORIES, SYSTEM, decide
from pai_learning.config import PaiConfig, get_config
from pai_learning.outcome import Outcome
from pai_learning.ratings import Rating, parse_rating
from pai_learning.store import Learning, SignalStore
from pai_learning.synthesis import WeeklyReport, generate_weekly_report

__all__ = [
    "__version__",
    "ALGORITHM",
    "CATEGORIES",
    "SYSTEM",
    "decide",
    "PaiConfig",
    "get_config",
    "Outcome",
    "Rating",
    "parse_rating",
    "Learning",
    "SignalStore",
    "WeeklyReport",
    "generate_weekly_report",
]
