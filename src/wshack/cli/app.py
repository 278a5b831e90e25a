"""CLI application entry point and command routing for wshack.

This module is the **sole error boundary** for the entire application.
It catches :class:`~wshack.exceptions.WshackError`, ``KeyboardInterrupt``,
and any unexpected ``Exception``, rendering user-friendly messages via Rich
and returning well-defined exit codes.

Architecture notes
------------------
* No business logic lives here; parsed arguments become a command
  variant, and :func:`~wshack.cli.commands.dispatch` does the rest.
* This module is the only place that builds the real collaborators
  (cargo, filesystem, interactive prompt) and the only place that
  translates a :class:`~wshack.core.models.RunOutcome` into the OS
  process exit code.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from wshack.cli import exit_codes
from wshack.cli.commands import (
    Command,
    DisableCommand,
    ExplainCommand,
    GenerateCommand,
    InitCommand,
    ManageDepsCommand,
    PublishCommand,
    RemoveDepsCommand,
    Session,
    VerifyCommand,
    dispatch,
)
from wshack.cli.console import COLOR_CHOICES, configure_output, console, escape_markup
from wshack.exceptions import WshackError
from wshack.version import __version__

logger = logging.getLogger(__name__)

PASS_THROUGH_SEPARATOR = "--"
_GLOBAL_OPTIONS_WITH_VALUE = frozenset({"--color", "--manifest-dir"})
_PUBLISH_OPTIONS_WITH_VALUE = frozenset({"-p", "--package"})


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _add_apply_flags(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "-n",
        "--dry-run",
        action="store_true",
        help="Print the operations that would be performed and exit.",
    )
    group.add_argument(
        "-y",
        "--yes",
        action="store_true",
        help="Apply the operations without asking for confirmation.",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Construct the top-level argument parser with one subparser per command."""
    parser = argparse.ArgumentParser(
        prog="wshack",
        description="Manage a workspace-hack package that unifies dependency features.",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        help="Only print warnings and errors.",
    )
    verbosity.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Print debug output.",
    )
    parser.add_argument(
        "--color",
        choices=COLOR_CHOICES,
        default="auto",
        help="When to colourise output (default: auto).",
    )
    parser.add_argument(
        "--manifest-dir",
        type=Path,
        default=None,
        help="Directory to start workspace discovery from (default: cwd).",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    init = sub.add_parser("init", help="Create a new workspace-hack package.")
    init.add_argument("path", help="Directory of the new package.")
    init.add_argument(
        "-p",
        "--package-name",
        default=None,
        help="Package name (default: the last component of PATH).",
    )
    init.add_argument(
        "--skip-config",
        action="store_true",
        help="Do not write a stub config file.",
    )
    _add_apply_flags(init)

    generate = sub.add_parser("generate", help="Write the workspace-hack contents.")
    generate.add_argument(
        "--diff",
        action="store_true",
        help="Print a diff instead of writing; exit 1 if there are changes.",
    )

    sub.add_parser("verify", help="Check that the workspace-hack unifies every dependency.")

    for name, help_text in (
        ("manage-deps", "Make workspace packages depend on the workspace-hack."),
        ("remove-deps", "Remove the workspace-hack dependency from packages."),
    ):
        edges = sub.add_parser(name, help=help_text)
        edges.add_argument(
            "-p",
            "--package",
            dest="packages",
            action="append",
            default=[],
            help="Package to operate on (repeatable; default: the whole workspace).",
        )
        _add_apply_flags(edges)

    explain = sub.add_parser("explain", help="Explain why a dependency is in the workspace-hack.")
    explain.add_argument("dep_name", metavar="DEP", help="Dependency name.")

    publish = sub.add_parser(
        "publish",
        help="Publish a package without its workspace-hack dependency.",
        usage="%(prog)s [-h] -p PACKAGE [--] [CARGO_ARGS ...]",
        description=(
            "Publish a package without its workspace-hack dependency. "
            "Arguments after -p PACKAGE are passed to cargo publish."
        ),
    )
    publish.add_argument("-p", "--package", required=True, help="Package to publish.")

    disable = sub.add_parser("disable", help="Empty the workspace-hack contents.")
    disable.add_argument(
        "--diff",
        action="store_true",
        help="Print a diff instead of writing; exit 1 if there are changes.",
    )

    return parser


def _command_index(argv: list[str]) -> int | None:
    """Return the index of the subcommand in *argv*, skipping global options."""
    index = 0
    while index < len(argv):
        token = argv[index]
        if token == PASS_THROUGH_SEPARATOR:
            return None
        if token in _GLOBAL_OPTIONS_WITH_VALUE:
            index += 2
            continue
        if not token.startswith("-"):
            return index
        index += 1
    return None


def _split_pass_through(argv: list[str]) -> tuple[list[str], list[str]]:
    """Split ``publish`` arguments meant for cargo off *argv*.

    wshack's own publish options come first; the first token it does not
    recognise, or everything after a ``--``, is handed to ``cargo publish``
    verbatim.  Other commands are returned untouched.
    """
    command = _command_index(argv)
    if command is None or argv[command] != "publish":
        return argv, []

    index = command + 1
    while index < len(argv):
        token = argv[index]
        if token == PASS_THROUGH_SEPARATOR:
            return argv[:index], argv[index + 1:]
        if token in _PUBLISH_OPTIONS_WITH_VALUE:
            index += 2
        elif token in ("-h", "--help") or token.startswith(("--package=", "-p")):
            index += 1
        else:
            return argv[:index], argv[index:]
    return argv, []


def _to_command(args: argparse.Namespace, extra: list[str]) -> Command:
    """Turn parsed arguments into a command variant."""
    name: str = args.command
    if name == "init":
        return InitCommand(
            path=args.path,
            package_name=args.package_name,
            skip_config=args.skip_config,
            dry_run=args.dry_run,
            yes=args.yes,
        )
    if name == "generate":
        return GenerateCommand(diff=args.diff)
    if name == "verify":
        return VerifyCommand()
    if name == "manage-deps":
        return ManageDepsCommand(packages=tuple(args.packages), dry_run=args.dry_run, yes=args.yes)
    if name == "remove-deps":
        return RemoveDepsCommand(packages=tuple(args.packages), dry_run=args.dry_run, yes=args.yes)
    if name == "explain":
        return ExplainCommand(dep_name=args.dep_name)
    if name == "publish":
        return PublishCommand(package=args.package, pass_through=tuple(extra))
    if name == "disable":
        return DisableCommand(diff=args.diff)
    raise ValueError(f"unknown command: {name}")


# ---------------------------------------------------------------------------
# Collaborator wiring
# ---------------------------------------------------------------------------

def _build_session(args: argparse.Namespace) -> Session:
    """Build the real, cargo-backed collaborators for one invocation."""
    from wshack.cli.confirm import ask_confirm
    from wshack.core.graph import build_graph
    from wshack.infra.cargo_metadata import CargoMetadataProvider
    from wshack.infra.lockfile import CargoLockRegenerator
    from wshack.infra.manifest_store import FileManifestStore
    from wshack.infra.publish import CargoPublisher

    cwd = Path.cwd()
    manifest_dir: Path = args.manifest_dir if args.manifest_dir is not None else cwd
    graph = build_graph(CargoMetadataProvider().fetch_metadata(manifest_dir))
    logger.debug("workspace root: %s", graph.workspace_root)

    return Session(
        graph=graph,
        store=FileManifestStore(graph.workspace_root),
        lock=CargoLockRegenerator(graph.workspace_root),
        confirm=ask_confirm,
        publisher_factory=lambda hack: CargoPublisher(graph.workspace_root, hack),
        cwd=cwd,
    )


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None) -> int:
    """Run the wshack CLI.

    Parameters
    ----------
    argv:
        Explicit argument list.  When ``None`` (default), ``sys.argv[1:]``
        is used.  Accepting *argv* enables deterministic testing without
        monkeypatching.

    Returns
    -------
    int
        OS process exit code.
    """
    parser = _build_parser()
    head, extra = _split_pass_through(list(sys.argv[1:] if argv is None else argv))
    args = parser.parse_args(head)

    if args.command is None:
        parser.print_help()
        return exit_codes.SUCCESS

    configure_output(color=args.color, verbosity=-1 if args.quiet else args.verbose)

    command = _to_command(args, extra)
    session = _build_session(args)
    outcome = dispatch(command, session)
    return exit_codes.for_outcome(outcome)


# ---------------------------------------------------------------------------
# Script-level error boundary
# ---------------------------------------------------------------------------

def cli() -> None:
    """Top-level error boundary invoked by the console-script entry point.

    This function wraps :func:`main` and guarantees the process never
    exits with a raw stack trace during normal usage.
    """
    try:
        code = main()
        sys.exit(code)
    except WshackError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape_markup(exc)}")
        if exc.hint:
            console.print(f"[yellow]Hint:[/yellow] {escape_markup(exc.hint)}")
        sys.exit(exit_codes.GENERAL_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]Aborted by user.[/yellow]")
        sys.exit(exit_codes.KEYBOARD_INTERRUPT)
    except Exception as exc:  # noqa: BLE001
        console.print(
            "[bold red]Unexpected error.[/bold red] "
            "Please report this issue.\n"
            f"  {type(exc).__name__}: {escape_markup(exc)}"
        )
        sys.exit(exit_codes.UNEXPECTED_ERROR)
