"""Result type returned by every hook handler.

Hooks must always exit 0, so from the host's point of view "nothing to do"
and "something broke" look identical.  :class:`Outcome` keeps the two apart
for logging:

- ``ok`` -- something was written or emitted.
- ``empty`` -- intentionally nothing (no payload, not a rating, sub-agent
  session, ...).
- ``failed`` -- an unexpected error ended this invocation early.
"""

from __future__ import annotations

from dataclasses import dataclass

OK = "ok"
EMPTY = "empty"
FAILED = "failed"

STATUSES: tuple[str, ...] = (OK, EMPTY, FAILED)


@dataclass(frozen=True, slots=True)
class Outcome:
    """What a single hook invocation did.

    Attributes
    ----------
    status:
        One of :data:`STATUSES`.
    detail:
        Short human-readable description for the log.
    output:
        Text the hook prints on stdout (only the session-start hook uses it).
    error:
        The exception behind a ``failed`` outcome, if any.
    """

    status: str
    detail: str = ""
    output: str = ""
    error: BaseException | None = None

    @classmethod
    def ok(cls, detail: str = "", output: str = "") -> Outcome:
        return cls(OK, detail, output)

    @classmethod
    def empty(cls, detail: str = "") -> Outcome:
        return cls(EMPTY, detail)

    @classmethod
    def failed(cls, detail: str, error: BaseException | None = None) -> Outcome:
        return cls(FAILED, detail, error=error)

    @property
    def is_ok(self) -> bool:
        return self.status == OK
