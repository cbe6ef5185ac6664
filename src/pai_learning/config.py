"""Central configuration for the learning hooks.

All tunables live here with sensible defaults.  Values can be overridden
through environment variables prefixed with ``PAI_`` (nested keys use
double underscores, e.g. ``PAI_SYNTHESIS__WINDOW_DAYS=14``).  Tuple fields
take comma-separated lists (``PAI_VOCABULARY__PATTERN_KEYWORDS=hook,mcp``).

A handful of top-level options also honour the unprefixed names the hook
scripts have always read (``KIRO_DIR``, ``TIME_ZONE``, ``DA``,
``SUBAGENT``, ``KIRO_AGENT``); the prefixed name wins when both are set.

Usage::

    from pai_learning.config import get_config

    cfg = get_config()
    print(cfg.dir)
    print(cfg.vocabulary.learning_indicators)
"""

from __future__ import annotations

import os
import sys
import types
import typing
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import TypeVar, get_type_hints

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Nested configuration sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class VocabularyConfig:
    """Keyword tables used by the rating parser and learning classifier.

    Kept as data so they can be tuned without touching the matching logic.
    Every entry is matched as a case-insensitive substring.
    """

    learning_indicators: tuple[str, ...] = (
        "problem", "solved", "discovered", "fixed", "learned", "realized",
        "figured out", "root cause", "debugging", "issue was", "turned out",
        "mistake", "error", "bug", "solution", "workaround", "insight",
    )
    """A response needs at least two distinct hits to count as a learning."""

    system_keywords: tuple[str, ...] = (
        "hook", "mcp", "tool", "command", "bash", "shell", "terminal",
        "config", "configuration", "setting", "environment", "env",
        "permission", "security", "path", "directory", "file system",
        "install", "setup", "runtime", "bun", "node", "npm",
        "api key", "token", "auth", "credential",
    )
    """Tooling, environment and configuration vocabulary (SYSTEM)."""

    algorithm_keywords: tuple[str, ...] = (
        "bug", "fix", "refactor", "implement", "logic", "algorithm",
        "pattern", "architecture", "design", "approach", "method",
        "function", "class", "module", "component", "test",
        "performance", "optimization", "memory", "database", "query",
        "api", "endpoint", "request", "response", "validation",
    )
    """Code, architecture and methodology vocabulary (ALGORITHM)."""

    pattern_keywords: tuple[str, ...] = (
        "hook", "mcp", "api", "config", "permission", "path", "directory",
        "bug", "fix", "error", "validation", "async", "timeout", "memory",
        "performance", "cache", "database", "query", "auth", "token",
        "test", "type", "typescript", "import", "export", "module",
    )
    """Keywords counted across learnings for the weekly recurring-pattern list."""

    unit_words: tuple[str, ...] = (
        "items", "files", "lines", "bytes", "kb", "mb", "gb",
        "seconds", "minutes", "hours", "days", "weeks", "months", "years",
        "times", "attempts", "tries", "errors", "warnings",
        "users", "requests", "responses", "records", "rows", "columns",
        "have", "has", "got", "found", "see", "there", "are", "is",
        "step", "steps", "phase", "phases", "version", "port",
    )
    """A leading number followed by one of these is a quantity, not a rating."""

    uncategorized_fallback: str = "ALGORITHM"
    """Category for indicator-positive text that hits neither vocabulary.

    Set to an empty string to file such text as a plain session summary."""


@dataclass(frozen=True, slots=True)
class SynthesisConfig:
    """Parameters for the weekly synthesis report."""

    window_days: int = 7
    low_average: float = 6.0
    low_rating: int = 5
    low_rating_learning: int = 6
    """Ratings below this also write a LOW_RATING learning document."""
    trend_delta: float = 0.5
    min_ratings_for_trend: int = 4
    min_pattern_count: int = 2
    recurring_pattern_count: int = 3
    max_patterns: int = 5
    max_recommendations: int = 5
    recent_sessions: int = 3
    """Number of session summaries listed in the session-start context."""


# ---------------------------------------------------------------------------
# Top-level configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class PaiConfig:
    """Root configuration object.

    ``dir`` is stored as a resolved :class:`~pathlib.Path` with ``~``
    expanded; everything the hooks persist lives below ``dir / "memory"``.
    """

    dir: Path = field(default_factory=lambda: Path("~/.claude"))
    time_zone: str = ""  # empty = system local time
    observability_url: str = "http://localhost:4000/events"
    relay_timeout: float = 5.0
    assistant_name: str = "kiro"
    agent: str = ""
    subagent: bool = False
    kiro_agent: str | None = None  # None = unset; "" still marks a sub-agent
    debug: bool = False

    vocabulary: VocabularyConfig = field(default_factory=VocabularyConfig)
    synthesis: SynthesisConfig = field(default_factory=SynthesisConfig)

    def __post_init__(self) -> None:
        # Frozen dataclass: go through object.__setattr__.
        object.__setattr__(self, "dir", Path(self.dir).expanduser())


# ---------------------------------------------------------------------------
# Environment-variable loader
# ---------------------------------------------------------------------------

_ENV_PREFIX = "PAI_"
_NESTED_SEP = "__"

_LEGACY_ENV: dict[str, str] = {
    "dir": "KIRO_DIR",
    "time_zone": "TIME_ZONE",
    "assistant_name": "DA",
    "subagent": "SUBAGENT",
    "kiro_agent": "KIRO_AGENT",
}
"""Unprefixed environment names consulted when the ``PAI_`` name is unset."""


def _resolve_type_hints(dc_type: type) -> dict[str, type]:
    """Resolve stringified annotations back to real types.

    ``from __future__ import annotations`` turns all annotations into
    strings.  :func:`typing.get_type_hints` evaluates them in the correct
    module namespace so we get the actual :class:`type` objects.
    """
    module = sys.modules.get(dc_type.__module__, None)
    globalns = getattr(module, "__dict__", {}) if module else {}
    return get_type_hints(dc_type, globalns=globalns)


def _coerce(value: str, target_type: type[T]) -> T:
    """Cast an env-var string to the target field type."""
    if typing.get_origin(target_type) in (typing.Union, types.UnionType):
        inner = [arg for arg in typing.get_args(target_type) if arg is not type(None)]
        return _coerce(value, inner[0])
    if typing.get_origin(target_type) is tuple:
        items = (item.strip() for item in value.split(","))
        return tuple(item for item in items if item)  # type: ignore[return-value]
    if target_type is bool:
        return target_type(value.lower() in ("1", "true", "yes"))  # type: ignore[return-value]
    if target_type is Path:
        return target_type(value)  # type: ignore[return-value]
    return target_type(value)  # type: ignore[return-value]


def _env_value(name: str, prefix: str) -> str | None:
    raw = os.environ.get(f"{prefix}{name}".upper())
    if raw is None and prefix == _ENV_PREFIX and name in _LEGACY_ENV:
        raw = os.environ.get(_LEGACY_ENV[name])
    return raw


def _load_dataclass(dc_type: type[T], prefix: str) -> T:
    """Recursively build a dataclass from env-var overrides + defaults."""
    hints = _resolve_type_hints(dc_type)
    kwargs: dict[str, object] = {}

    for f in fields(dc_type):  # type: ignore[arg-type]
        field_type = hints[f.name]
        nested_prefix = f"{prefix}{f.name}{_NESTED_SEP}".upper()

        if hasattr(field_type, "__dataclass_fields__"):
            kwargs[f.name] = _load_dataclass(field_type, nested_prefix)
        else:
            raw = _env_value(f.name, prefix)
            if raw is not None:
                kwargs[f.name] = _coerce(raw, field_type)

    return dc_type(**kwargs)  # type: ignore[return-value]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

_cached_config: PaiConfig | None = None


def get_config(*, reload: bool = False) -> PaiConfig:
    """Return the current :class:`PaiConfig`.

    On the first call the config is built by merging defaults with any
    ``PAI_*`` (and legacy) environment variables.  The result is cached for
    the lifetime of the process unless *reload* is ``True``.

    Parameters
    ----------
    reload:
        Force re-reading environment variables and rebuilding the config.
    """
    global _cached_config  # noqa: PLW0603
    if _cached_config is None or reload:
        _cached_config = _load_dataclass(PaiConfig, _ENV_PREFIX)
    return _cached_config
