"""CLI entry points for the lifecycle hooks and synthesis commands.

Hooks run as short-lived shell commands: they read a JSON payload from
stdin, do one thing, and exit 0 no matter what happened.  Status lines go to
stderr; only the session-start hook writes to stdout (the context block the
host injects into the model's context).

Usage::

    # Hook commands (read JSON from stdin):
    python -m pai_learning hook session-start
    python -m pai_learning hook prompt-submit
    python -m pai_learning hook stop
    python -m pai_learning hook capture-event --event-type PreToolUse

    # Utility commands:
    python -m pai_learning synthesize [--force]
    python -m pai_learning report
    python -m pai_learning health
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import sys
import time
from typing import Any, Awaitable, Callable

import anyio

from pai_learning.agents import MAPPING_FILENAME, AgentSessionStore, resolve_agent
from pai_learning.classifier import decide, extract_insight, extract_summary
from pai_learning.config import PaiConfig, get_config
from pai_learning.context import build_context, is_subagent_session
from pai_learning.outcome import EMPTY, FAILED, Outcome
from pai_learning.ratings import Rating, parse_rating, rating_feedback
from pai_learning.relay import build_envelope, send_event
from pai_learning.store import SignalStore
from pai_learning.synthesis import (
    generate_weekly_report,
    load_latest_weekly_report,
    should_generate_weekly_report,
    week_number,
)
from pai_learning.timeutil import display_local, iso_local, local_now
from pai_learning.transcript import last_assistant_response

log = logging.getLogger(__name__)

_Handler = Callable[[dict[str, Any]], Awaitable[Outcome]]

_USAGE = (
    "Usage: python -m pai_learning "
    "{hook <subcommand>|synthesize [--force]|report|health}"
)


def _read_stdin_json() -> dict[str, Any]:
    """Read and parse the hook payload from stdin.

    Empty input, invalid JSON and non-object JSON all yield ``{}`` so the
    handler takes its silent early-exit path.
    """
    raw: str = ""
    try:
        raw = sys.stdin.read()
        if not raw or not raw.strip():
            return {}
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        log.warning(
            "Failed to parse stdin JSON (%s). Input preview: %r. "
            "Hook will proceed with empty data.",
            exc,
            raw[:200] if raw else "<unread>",
        )
        return {}
    return data if isinstance(data, dict) else {}


def _status(message: str) -> None:
    """Non-blocking feedback line for the user (stderr)."""
    sys.stderr.write(message + "\n")


def _store(cfg: PaiConfig) -> SignalStore:
    return SignalStore(cfg.dir, cfg.time_zone)


def _session_id(data: dict[str, Any]) -> str:
    return str(data.get("session_id") or "unknown")


# ------------------------------------------------------------------
# Hook: prompt-submit (explicit rating capture)
# ------------------------------------------------------------------

async def _hook_prompt_submit(data: dict[str, Any]) -> Outcome:
    """Handle UserPromptSubmit.

    Records the prompt as a rating when it parses as one.  Ratings below
    the low-rating threshold also get an ALGORITHM follow-up document.
    """
    prompt = data.get("prompt")
    if not isinstance(prompt, str) or not prompt.strip():
        return Outcome.empty("no prompt")

    cfg = get_config()
    parsed = parse_rating(prompt, cfg.vocabulary.unit_words)
    if parsed is None:
        return Outcome.empty("not a rating")

    store = _store(cfg)
    now = local_now(cfg.time_zone)
    rating = Rating(
        timestamp=iso_local(now),
        rating=parsed.rating,
        session_id=_session_id(data),
        comment=parsed.comment,
    )

    await anyio.to_thread.run_sync(store.append_rating, rating)

    if rating.rating < cfg.synthesis.low_rating_learning:
        await anyio.to_thread.run_sync(store.write_low_rating_learning, rating, now)
        _status(f"⚠️ Low rating ({rating.rating}/10) captured to LEARNING/ALGORITHM/")

    _status(rating_feedback(rating))
    return Outcome.ok(f"rating {rating.rating} recorded")


# ------------------------------------------------------------------
# Hook: stop (learning / session capture)
# ------------------------------------------------------------------

async def _hook_stop(data: dict[str, Any]) -> Outcome:
    """Handle Stop.

    Files the final assistant response either as a categorised learning or
    as a plain session summary.  The response comes from the payload or,
    failing that, from the transcript file.
    """
    response = data.get("response")
    transcript_path = data.get("transcript_path")

    if not response and not transcript_path:
        if data.get("hook_event_name") == "stop":
            # Hosts that send only {hook_event_name, cwd} give us nothing to
            # classify; ratings are their only signal.
            _status("📋 Session ended (learning capture via ratings only)")
        return Outcome.empty("no response content")

    if not response and isinstance(transcript_path, str):
        response = await anyio.to_thread.run_sync(last_assistant_response, transcript_path)
    if not isinstance(response, str) or not response.strip():
        return Outcome.empty("no assistant response")

    cfg = get_config()
    store = _store(cfg)
    now = local_now(cfg.time_zone)
    session_id = _session_id(data)
    summary = extract_summary(response)
    decision = decide(response, cfg.vocabulary)

    if decision.is_learning:
        assert decision.category is not None
        write = functools.partial(
            store.write_learning,
            category=decision.category,
            summary=summary,
            insight=extract_insight(response),
            response=response,
            session_id=session_id,
            now=now,
        )
        path = await anyio.to_thread.run_sync(write)
        _status(
            f"📚 Learning captured to LEARNING/{decision.category}/"
            f"{path.parent.name}/{path.name}"
        )
        return Outcome.ok(f"{decision.category} learning captured")

    write = functools.partial(
        store.write_session_summary,
        summary=summary,
        response=response,
        session_id=session_id,
        now=now,
    )
    path = await anyio.to_thread.run_sync(write)
    _status(f"📝 Session captured to history/sessions/{path.parent.name}/{path.name}")
    return Outcome.ok("session summary captured")


# ------------------------------------------------------------------
# Hook: session-start (context injection + Monday synthesis)
# ------------------------------------------------------------------

async def _hook_session_start(data: dict[str, Any]) -> Outcome:
    """Handle SessionStart.

    Generates the weekly report on its Monday trigger, then composes the
    CORE context block for injection.
    """
    cfg = get_config()
    if is_subagent_session(cfg):
        return Outcome.empty("sub-agent session")
    if not data:
        return Outcome.empty("no payload")

    store = _store(cfg)
    now = local_now(cfg.time_zone)

    try:
        if await anyio.to_thread.run_sync(should_generate_weekly_report, store, now):
            generate = functools.partial(
                generate_weekly_report,
                store,
                now=now,
                vocab=cfg.vocabulary,
                cfg=cfg.synthesis,
            )
            report = await anyio.to_thread.run_sync(generate)
            if report is not None:
                _status(
                    f"📊 Weekly synthesis generated for "
                    f"{report.year}-W{report.week_number:02d}"
                )
    except OSError as exc:
        # The context block matters more than the report; keep going.
        log.warning("session-start: weekly synthesis failed: %s", exc)

    text = await anyio.to_thread.run_sync(build_context, cfg, store, now)
    if text is None:
        _status("⚠️ No CORE skill found - skipping context injection")
        return Outcome.empty("no CORE skill")
    return Outcome.ok("context injected", output=text)


# ------------------------------------------------------------------
# Hook: capture-event (raw event log + relay)
# ------------------------------------------------------------------

async def _hook_capture_event(data: dict[str, Any], event_type: str) -> Outcome:
    """Record any hook event and forward it to the observability relay.

    The agent mapping, the raw event log and the relay are independent:
    a failure in one is logged and the others still run.
    """
    if not data:
        return Outcome.empty("no payload")

    cfg = get_config()
    store = _store(cfg)
    now = local_now(cfg.time_zone)
    session_id = str(data.get("session_id") or data.get("cwd") or "main")

    agents = await anyio.to_thread.run_sync(AgentSessionStore.load, cfg.dir / MAPPING_FILENAME)
    agent = resolve_agent(
        agents,
        session_id,
        event_type,
        data,
        assistant_name=cfg.assistant_name,
        agent_override=cfg.agent,
    )
    try:
        await anyio.to_thread.run_sync(agents.save)
    except OSError as exc:
        log.warning("capture-event: could not save agent mapping: %s", exc)

    event = {
        "source_app": agent,
        "session_id": session_id,
        "hook_event_type": event_type,
        "payload": data,
        "timestamp": int(time.time() * 1000),
        "timestamp_local": display_local(now),
    }
    try:
        await anyio.to_thread.run_sync(store.append_event, event, now)
    except OSError as exc:
        log.warning("capture-event: could not append to event log: %s", exc)

    envelope = build_envelope(
        source_app=agent,
        session_id=session_id,
        event_type=event_type,
        data=data,
        agent_type=agent,
        timestamp_ms=event["timestamp"],
    )
    sent = await send_event(cfg.observability_url, envelope, timeout=cfg.relay_timeout)
    detail = f"{event_type} captured" if sent else f"{event_type} captured (relay unavailable)"
    return Outcome.ok(detail)


# ------------------------------------------------------------------
# Hook dispatch
# ------------------------------------------------------------------

def _log_outcome(name: str, outcome: Outcome, latency_ms: int) -> None:
    if outcome.status == FAILED:
        err = outcome.error
        if isinstance(err, (TimeoutError, ConnectionError)):
            log.warning("⚠️ %s hook: transient error: %s", name, err)
        else:
            log.error("⚠️ %s hook failed: %s", name, outcome.detail, exc_info=err)
    elif outcome.status == EMPTY:
        log.debug("%s hook: nothing to do (%s)", name, outcome.detail)
    else:
        log.debug("%s hook: %s (%d ms)", name, outcome.detail, latency_ms)


def _parse_event_type(args: list[str]) -> str | None:
    for arg in args:
        if arg.startswith("--event-type="):
            return arg.split("=", 1)[1] or None
    if "--event-type" in args:
        idx = args.index("--event-type")
        if idx + 1 < len(args):
            return args[idx + 1]
    return None


def run_hook(
    subcommand: str,
    args: list[str] | None = None,
    data: dict[str, Any] | None = None,
) -> Outcome:
    """Run one hook.  Reads JSON from stdin unless *data* is given.

    Never raises: every failure becomes a ``failed`` :class:`Outcome`.
    """
    handlers: dict[str, _Handler] = {
        "session-start": _hook_session_start,
        "prompt-submit": _hook_prompt_submit,
        "stop": _hook_stop,
    }

    if subcommand == "capture-event":
        event_type = _parse_event_type(args or [])
        if not event_type:
            _status("Missing --event-type argument")
            return Outcome.empty("missing --event-type")
        handler: _Handler | None = functools.partial(_hook_capture_event, event_type=event_type)
    else:
        handler = handlers.get(subcommand)

    if handler is None:
        _status(f"Unknown hook subcommand: {subcommand}")
        return Outcome.empty(f"unknown hook {subcommand!r}")

    t0 = time.monotonic()
    try:
        if data is None:
            data = _read_stdin_json()
        outcome = asyncio.run(handler(data))
    except Exception as exc:
        outcome = Outcome.failed(str(exc) or type(exc).__name__, exc)

    _log_outcome(subcommand, outcome, int((time.monotonic() - t0) * 1000))
    if outcome.output:
        print(outcome.output)
    return outcome


# ------------------------------------------------------------------
# Utility commands
# ------------------------------------------------------------------

def run_synthesize(args: list[str]) -> None:
    """Generate this week's report (``--force`` overwrites)."""
    force = "--force" in args or "-f" in args

    cfg = get_config()
    store = _store(cfg)
    now = local_now(cfg.time_zone)
    report = generate_weekly_report(
        store, now=now, force=force, vocab=cfg.vocabulary, cfg=cfg.synthesis
    )
    if report is None:
        print(
            f"Weekly report for {now.year}-W{week_number(now):02d} already exists "
            "(use --force to regenerate)"
        )
        return

    print(f"Weekly report for {report.year}-W{report.week_number:02d} written")
    summary = report.ratings_summary
    if summary is not None:
        print(f"  ratings: {summary.count}, avg {summary.average}/10, trend {summary.trend}")
    print(
        f"  learnings: {report.learnings_count['system']} SYSTEM, "
        f"{report.learnings_count['algorithm']} ALGORITHM"
    )
    for rec in report.recommendations:
        print(f"  - {rec}")


def run_report() -> None:
    """Print the most recent weekly report."""
    text = load_latest_weekly_report(_store(get_config()))
    print(text if text is not None else "No weekly reports yet.")


def _health() -> str:
    cfg = get_config()
    store = _store(cfg)
    window = cfg.synthesis.window_days
    ratings = store.load_ratings(window)
    learnings = store.load_learnings(window)
    latest = store.latest_report_path()
    lines = [
        f"root: {cfg.dir} ({'exists' if cfg.dir.is_dir() else 'missing'})",
        f"ratings (last {window} days): {len(ratings)}",
        f"learnings (last {window} days): {len(learnings)}",
        f"latest weekly report: {latest if latest is not None else 'none'}",
        f"relay: {cfg.observability_url}",
    ]
    return "\n".join(lines)


def run_health() -> None:
    print(_health())


# ------------------------------------------------------------------
# CLI dispatch
# ------------------------------------------------------------------

def _configure_debug_log(cfg: PaiConfig) -> None:
    """With ``PAI_DEBUG`` set, mirror package logs into ``hooks-debug.log``."""
    if not cfg.debug:
        return
    try:
        cfg.dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(cfg.dir / "hooks-debug.log", encoding="utf-8")
    except OSError as exc:
        sys.stderr.write(f"[pai_learning] cannot open debug log: {exc}\n")
        return
    handler.setFormatter(logging.Formatter("[%(asctime)s] %(name)s %(levelname)s: %(message)s"))
    pkg_logger = logging.getLogger("pai_learning")
    pkg_logger.addHandler(handler)
    pkg_logger.setLevel(logging.DEBUG)


def dispatch(args: list[str]) -> None:
    """Main CLI dispatcher.

    Parameters
    ----------
    args:
        Command-line arguments after ``python -m pai_learning``,
        e.g. ``["hook", "stop"]`` or ``["synthesize", "--force"]``.
    """
    if not args:
        print(_USAGE, file=sys.stderr)
        sys.exit(1)

    command = args[0]
    try:
        _configure_debug_log(get_config())
    except ValueError as exc:
        print(f"⚠️ Invalid PAI configuration: {exc}", file=sys.stderr)
        sys.exit(0 if command == "hook" else 1)

    if command == "hook":
        if len(args) < 2:
            print("Usage: python -m pai_learning hook <subcommand>", file=sys.stderr)
            sys.exit(0)
        run_hook(args[1], args[2:])
        sys.exit(0)

    elif command == "synthesize":
        run_synthesize(args[1:])
        sys.exit(0)

    elif command == "report":
        run_report()
        sys.exit(0)

    elif command == "health":
        run_health()
        sys.exit(0)

    print(_USAGE, file=sys.stderr)
    sys.exit(1)
