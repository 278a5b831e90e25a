"""Allow ``python -m wshack`` invocation.

This module simply delegates to the CLI error-boundary entry point so
that ``python -m wshack`` behaves identically to the ``wshack``
console script.
"""

from __future__ import annotations

from wshack.cli.app import cli

if __name__ == "__main__":
    cli()
