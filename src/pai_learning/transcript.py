"""Transcript reader for the stop hook.

Claude Code hands the stop hook a ``transcript_path`` instead of the
response text.  The transcript is JSONL, one entry per line; assistant
entries carry ``message.content`` as either a string or a list of blocks.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

log = logging.getLogger(__name__)

_MIN_RESPONSE_CHARS = 50


def _block_text(block: Any) -> str:
    if isinstance(block, str):
        return block
    if isinstance(block, dict):
        if block.get("text"):
            return str(block["text"])
        if block.get("content"):
            return str(block["content"])
    return ""


def last_assistant_response(path: Path | str) -> str | None:
    """Return the text of the last substantial assistant message.

    Entries are scanned from the end; unparseable lines are skipped and
    messages of 50 characters or fewer are passed over.  Returns ``None``
    when the file is missing or holds no such message.
    """
    path = Path(path)
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        log.debug("Cannot read transcript %s: %s", path, exc)
        return None

    for raw_line in reversed(lines):
        raw_line = raw_line.strip()
        if not raw_line:
            continue
        try:
            entry = json.loads(raw_line)
        except json.JSONDecodeError:
            continue
        if not isinstance(entry, dict) or entry.get("type") != "assistant":
            continue

        message = entry.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not content:
            continue
        blocks = content if isinstance(content, list) else [content]
        response = "\n".join(_block_text(b) for b in blocks).strip()
        if len(response) > _MIN_RESPONSE_CHARS:
            return response

    return None
