"""wshack — keep a Cargo workspace-hack package in sync with its workspace.

Built around a plan / review / apply reconciliation loop with a strict
layered architecture.
"""

from wshack.version import __version__

__all__: list[str] = ["__version__"]
