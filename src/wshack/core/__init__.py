"""Core / service layer — planning, diffing and the apply state machine.

Rules
-----
* No ``print()`` calls; progress is reported through ``logging``.
* No subprocesses.  The only file reads are the config resolver and the
  ``init`` emptiness check; every write goes through a ``ManifestStore``.
* No imports from ``cli`` or ``infra``.
"""

from wshack.core.builder import HackBuilder, HackOutput
from wshack.core.controller import ApplyController
from wshack.core.graph import build_graph
from wshack.core.locator import resolve
from wshack.core.models import (
    Operation,
    OperationKind,
    OutcomeKind,
    PackageSet,
    Plan,
    RunOutcome,
    WorkspaceGraph,
)
from wshack.core.protocols import LockRegenerator, ManifestStore, MetadataProvider, Publisher
from wshack.core.scaffold import init_plan
from wshack.core.selector import select

__all__: list[str] = [
    "ApplyController",
    "HackBuilder",
    "HackOutput",
    "LockRegenerator",
    "ManifestStore",
    "MetadataProvider",
    "Operation",
    "OperationKind",
    "OutcomeKind",
    "PackageSet",
    "Plan",
    "Publisher",
    "RunOutcome",
    "WorkspaceGraph",
    "build_graph",
    "init_plan",
    "resolve",
    "select",
]
