"""Parsed command variants and their dispatch onto the core layer.

Each subcommand becomes one frozen dataclass; :func:`dispatch` wires it
to the planner, the apply controller and the collaborators held by a
:class:`Session` and returns a :class:`RunOutcome`.  Nothing here maps
outcomes to exit codes; that is :mod:`wshack.cli.exit_codes`' job.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from wshack.cli.render import render_explanation, render_validation_issues
from wshack.core import config
from wshack.core.config import DEFAULT_CONFIG_PATH
from wshack.core.controller import ApplyController
from wshack.core.differ import DISABLE_MESSAGE
from wshack.core.locator import resolve
from wshack.core.models import OutcomeKind, PackageMetadata, RunOutcome, WorkspaceGraph
from wshack.core.protocols import Confirm, LockRegenerator, ManifestStore, Publisher
from wshack.core.scaffold import init_plan
from wshack.core.selector import select
from wshack.exceptions import UnknownPackage, UnrecognizedRegistry

logger = logging.getLogger(__name__)

PublisherFactory = Callable[[PackageMetadata], Publisher]
"""Build a publisher for the given workspace-hack package."""


# ---------------------------------------------------------------------------
# Command variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class InitCommand:
    path: str
    package_name: str | None = None
    skip_config: bool = False
    dry_run: bool = False
    yes: bool = False


@dataclass(frozen=True, slots=True)
class GenerateCommand:
    diff: bool = False


@dataclass(frozen=True, slots=True)
class VerifyCommand:
    pass


@dataclass(frozen=True, slots=True)
class ManageDepsCommand:
    packages: tuple[str, ...] = ()
    dry_run: bool = False
    yes: bool = False


@dataclass(frozen=True, slots=True)
class RemoveDepsCommand:
    packages: tuple[str, ...] = ()
    dry_run: bool = False
    yes: bool = False


@dataclass(frozen=True, slots=True)
class ExplainCommand:
    dep_name: str


@dataclass(frozen=True, slots=True)
class PublishCommand:
    package: str
    pass_through: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class DisableCommand:
    diff: bool = False


Command = (
    InitCommand
    | GenerateCommand
    | VerifyCommand
    | ManageDepsCommand
    | RemoveDepsCommand
    | ExplainCommand
    | PublishCommand
    | DisableCommand
)


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class Session:
    """Everything one invocation needs, built once from the real workspace.

    Tests build a session by hand with stub collaborators.
    """

    graph: WorkspaceGraph
    store: ManifestStore
    lock: LockRegenerator
    confirm: Confirm
    publisher_factory: PublisherFactory
    cwd: Path = field(default_factory=Path.cwd)

    @property
    def controller(self) -> ApplyController:
        return ApplyController(self.store, self.confirm)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def dispatch(command: Command, session: Session) -> RunOutcome:
    """Run *command* against *session* and return its outcome.

    Raises
    ------
    WshackError
        Any known failure; the CLI boundary renders it.
    """
    if isinstance(command, InitCommand):
        return _run_init(command, session)

    builder, options = config.load(session.graph)

    if isinstance(command, GenerateCommand):
        try:
            contents = builder.generate(options)
        except UnrecognizedRegistry as exc:
            logger.error("%s", exc)
            logger.error(
                "(add it to the [registries] section of the config, then rerun)",
            )
            return RunOutcome(OutcomeKind.UNRECOGNIZED_REGISTRY, reason=str(exc))
        manifest = session.store.read_hack_manifest(builder.hack_package)
        return session.controller.reconcile(
            manifest,
            contents,
            diff_only=command.diff,
            after=session.lock.regenerate,
        )

    if isinstance(command, VerifyCommand):
        hack = builder.hack_package
        issues = builder.verify(session.store.read_hack_manifest(hack))
        if not issues:
            logger.info("%s works correctly", hack.name)
            return RunOutcome(OutcomeKind.NO_OP)
        render_validation_issues(hack.name, issues)
        return RunOutcome(OutcomeKind.VALIDATION_FAILED)

    if isinstance(command, ManageDepsCommand):
        plan = builder.manage_dep_ops(select(command.packages, session.graph))
        return session.controller.run(
            plan,
            dry_run=command.dry_run,
            yes=command.yes,
            after=session.lock.regenerate,
        )

    if isinstance(command, RemoveDepsCommand):
        plan = builder.remove_dep_ops(select(command.packages, session.graph))
        return session.controller.run(
            plan,
            dry_run=command.dry_run,
            yes=command.yes,
            after=session.lock.regenerate,
        )

    if isinstance(command, ExplainCommand):
        render_explanation(builder.explain(command.dep_name))
        return RunOutcome(OutcomeKind.NO_OP)

    if isinstance(command, PublishCommand):
        package = session.graph.member_by_name(command.package)
        if package is None:
            raise UnknownPackage([command.package])
        publisher = session.publisher_factory(builder.hack_package)
        return RunOutcome.delegated(publisher.publish(package, command.pass_through))

    if isinstance(command, DisableCommand):
        manifest = session.store.read_hack_manifest(builder.hack_package)
        return session.controller.reconcile(
            manifest,
            DISABLE_MESSAGE,
            diff_only=command.diff,
            after=session.lock.regenerate,
        )

    raise TypeError(f"unsupported command: {command!r}")


def _run_init(command: InitCommand, session: Session) -> RunOutcome:
    root = session.graph.workspace_root
    path = resolve(Path(command.path), root, session.cwd)
    plan = init_plan(
        session.graph,
        path,
        package_name=command.package_name,
        include_config=not command.skip_config,
    )

    def next_steps() -> None:
        steps = [f"* configure at {DEFAULT_CONFIG_PATH}"] if not command.skip_config else []
        steps += [
            "* run `wshack generate` to generate contents",
            "* run `wshack manage-deps` to add dependency lines",
        ]
        logger.info("next steps:\n%s\n", "\n".join(steps))

    return session.controller.run(
        plan,
        dry_run=command.dry_run,
        yes=command.yes,
        after=next_steps,
    )
