"""Fire-and-forget event relay client.

Every captured hook event is POSTed as a small JSON envelope to the
observability relay (``PAI_OBSERVABILITY_URL``).  The relay is optional: a
refused connection, a timeout or an error status is logged and reported as
``False``, never raised, and never retried.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

log = logging.getLogger(__name__)


def build_envelope(
    *,
    source_app: str,
    session_id: str,
    event_type: str,
    data: dict[str, Any],
    agent_type: str,
    timestamp_ms: int | None = None,
) -> dict[str, Any]:
    """Normalise a hook payload into the relay's wire shape.

    ``tool_name`` and ``tool_input`` are only included when the payload
    carries them.
    """
    envelope: dict[str, Any] = {
        "source_app": source_app,
        "session_id": session_id,
        "hook_event_type": event_type,
        "timestamp": timestamp_ms if timestamp_ms is not None else int(time.time() * 1000),
    }
    if data.get("tool_name") is not None:
        envelope["tool_name"] = data["tool_name"]
    if data.get("tool_input") is not None:
        envelope["tool_input"] = data["tool_input"]
    envelope["agent_type"] = agent_type
    return envelope


async def send_event(
    url: str,
    envelope: dict[str, Any],
    *,
    timeout: float = 5.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """POST *envelope* to *url*.  Returns ``True`` on a 2xx response."""
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.post(url, json=envelope)
    except httpx.HTTPError as exc:
        log.warning("Relay %s unreachable: %s", url, exc)
        return False

    if resp.is_success:
        log.debug("Relay accepted %s event", envelope.get("hook_event_type"))
        return True
    log.warning("Relay %s rejected event: HTTP %d", url, resp.status_code)
    return False
