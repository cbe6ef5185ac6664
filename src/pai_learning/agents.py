"""Session -> agent-name mapping.

The event relay labels each event with the agent that produced it.  Hook
processes are short-lived, so the mapping is persisted in
``<root>/agent-sessions.json`` and owned by an explicit
:class:`AgentSessionStore`: loaded once at the start of a hook invocation,
mutated in memory, saved once at the end if anything changed.

The map never expires entries; at personal-use scale that is fine.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

MAPPING_FILENAME = "agent-sessions.json"

_AGENT_SPAWNING_TOOL = "Task"
_RESET_EVENTS: frozenset[str] = frozenset({"Stop", "SubagentStop"})


class AgentSessionStore:
    """In-memory view of ``agent-sessions.json`` with explicit load/save."""

    def __init__(self, path: Path, mapping: dict[str, str] | None = None) -> None:
        self.path = Path(path)
        self._mapping: dict[str, str] = dict(mapping or {})
        self._dirty = False

    @classmethod
    def load(cls, path: Path) -> AgentSessionStore:
        """Read the mapping from *path*; a missing or corrupt file starts empty."""
        path = Path(path)
        mapping: dict[str, str] = {}
        if path.exists():
            try:
                raw = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
                log.warning("Ignoring unreadable agent mapping %s: %s", path, exc)
            else:
                if isinstance(raw, dict):
                    mapping = {str(k): str(v) for k, v in raw.items()}
        return cls(path, mapping)

    def get(self, session_id: str, default: str) -> str:
        return self._mapping.get(session_id) or default

    def set(self, session_id: str, agent_name: str) -> None:
        if self._mapping.get(session_id) != agent_name:
            self._mapping[session_id] = agent_name
            self._dirty = True

    @property
    def dirty(self) -> bool:
        return self._dirty

    def save(self) -> None:
        """Persist the mapping if it changed since :meth:`load`."""
        if not self._dirty:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._mapping, indent=2), encoding="utf-8")
        self._dirty = False

    def __len__(self) -> int:
        return len(self._mapping)


def resolve_agent(
    agents: AgentSessionStore,
    session_id: str,
    event_type: str,
    data: dict[str, Any],
    *,
    assistant_name: str,
    agent_override: str = "",
) -> str:
    """Work out which agent an event belongs to, updating *agents*.

    Precedence: a ``Task`` tool call spawning a sub-agent, then a
    ``Stop``/``SubagentStop`` resetting to the main assistant, then the
    ``PAI_AGENT`` override, then an ``agent_type`` in the payload.  Otherwise
    the previously recorded agent (or the assistant) is used unchanged.
    """
    agent = agents.get(session_id, assistant_name)

    tool_input = data.get("tool_input")
    subagent_type = tool_input.get("subagent_type") if isinstance(tool_input, dict) else None

    if data.get("tool_name") == _AGENT_SPAWNING_TOOL and subagent_type:
        agent = str(subagent_type)
    elif event_type in _RESET_EVENTS:
        agent = assistant_name
    elif agent_override:
        agent = agent_override
    elif data.get("agent_type"):
        agent = str(data["agent_type"])
    else:
        return agent

    agents.set(session_id, agent)
    return agent
