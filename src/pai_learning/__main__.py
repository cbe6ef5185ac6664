"""Entry point for ``python -m pai_learning``.

Dispatches to the hook and utility commands in :mod:`pai_learning.cli`.
"""

from __future__ import annotations

import sys


def main() -> None:
    """Dispatch CLI commands."""
    from pai_learning.cli import dispatch

    dispatch(sys.argv[1:])


if __name__ == "__main__":
    main()
