"""Custom exception hierarchy for wshack.

All exceptions that cross layer boundaries must inherit from
:class:`WshackError`.  Raw third-party and OS exceptions (``OSError``,
``subprocess`` failures, ``tomllib`` decode errors) must NEVER propagate
beyond the layer that triggered them; they must be caught and re-raised
as a typed subclass defined here.

Hierarchy
---------
WshackError
├── ConfigNotFound
├── ConfigParseError
├── PlanBuilderError
├── GraphError
├── PathOutsideWorkspace
├── InvalidEncoding
├── UnknownPackage
├── PackageAlreadyExists
├── ConfigAlreadyExists
├── InvalidPackageName
├── UnrecognizedRegistry
├── GenerationError
├── DependencyNotFound
├── ManifestError
├── ApplyFailed
├── LockRegenerationFailed
├── PublishError
├── UserInputError
└── ToolNotFoundError
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wshack.core.models import Operation


class WshackError(Exception):
    """Base exception for all wshack errors.

    Every user-visible error condition must map to a subclass of this
    exception so that the CLI error boundary can render a clean message
    without leaking internal stack traces.
    """

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint: str | None = hint
        """Optional actionable guidance shown below the error message."""


# --- Configuration ---------------------------------------------------------

class ConfigNotFound(WshackError):
    """Raised when neither the primary nor the fallback config exists."""

    def __init__(self, candidates: Sequence[Path]) -> None:
        self.candidates: tuple[Path, ...] = tuple(candidates)
        listed = ", ".join(str(path) for path in self.candidates)
        super().__init__(
            f"no wshack configuration found (looked for {listed})",
            hint="Run `wshack init <path>` to create a workspace-hack package and config.",
        )


class ConfigParseError(WshackError):
    """Raised when the configuration document is malformed."""

    def __init__(self, path: Path, cause: str) -> None:
        self.path: Path = path
        self.cause: str = cause
        super().__init__(f"error deserializing config at {path}: {cause}")


class PlanBuilderError(WshackError):
    """Raised when the graph-aware planner cannot be built from the config."""


class GraphError(WshackError):
    """Raised when workspace metadata cannot be turned into a package graph."""


# --- Paths and selection ---------------------------------------------------

class PathOutsideWorkspace(WshackError):
    """Raised when a user path does not live under the workspace root."""

    def __init__(self, path: Path, workspace_root: Path) -> None:
        self.path: Path = path
        self.workspace_root: Path = workspace_root
        super().__init__(
            f"path {path} is not inside workspace root {workspace_root}",
        )


class InvalidEncoding(WshackError):
    """Raised when a path cannot be represented as UTF-8 text."""


class UnknownPackage(WshackError):
    """Raised when one or more selected names are not workspace members."""

    def __init__(self, names: Sequence[str]) -> None:
        self.names: tuple[str, ...] = tuple(names)
        super().__init__(
            "unknown workspace package(s): " + ", ".join(self.names),
            hint="Package names must match the `name` of a workspace member.",
        )


# --- Init ------------------------------------------------------------------

class PackageAlreadyExists(WshackError):
    """Raised when ``init`` targets a path that is already populated."""


class ConfigAlreadyExists(WshackError):
    """Raised when ``init`` would overwrite an existing configuration."""


class InvalidPackageName(WshackError):
    """Raised when a derived or explicit package name breaks naming rules."""


# --- Generation ------------------------------------------------------------

class UnrecognizedRegistry(WshackError):
    """Raised when a dependency comes from a registry with no configured alias.

    This is an advisory condition: the fix is a single line in the
    ``[registries]`` table of the config, so the CLI reports it with its
    own exit status instead of the general failure code.
    """

    def __init__(self, package: str, version: str, registry_url: str) -> None:
        self.package: str = package
        self.version: str = version
        self.registry_url: str = registry_url
        super().__init__(
            f"unrecognized registry URL {registry_url} found for {package} v{version}",
            hint="Add the registry to the [registries] section of the wshack config.",
        )


class GenerationError(WshackError):
    """Raised for any other failure while computing generated contents."""


class DependencyNotFound(WshackError):
    """Raised when ``explain`` names a dependency absent from the output."""

    def __init__(self, name: str) -> None:
        self.name: str = name
        super().__init__(
            f"dependency '{name}' not found in workspace-hack",
            hint="Check spelling, or regenerate the workspace-hack with `wshack generate`.",
        )


# --- Manifests and apply ---------------------------------------------------

class ManifestError(WshackError):
    """Raised when a manifest cannot be read, parsed, or written."""


class ApplyFailed(WshackError):
    """Raised when one operation of a plan fails; later ones are skipped.

    Operations already applied are not rolled back.  Each operation is
    idempotent, so re-running the command converges.
    """

    def __init__(
        self,
        operation: Operation,
        index: int,
        total: int,
        cause: BaseException,
    ) -> None:
        self.operation: Operation = operation
        self.index: int = index
        self.total: int = total
        super().__init__(
            f"operation {index + 1} of {total} failed "
            f"({operation.describe()}): {cause}",
            hint="Operations are idempotent; fix the cause and re-run the command.",
        )


class LockRegenerationFailed(WshackError):
    """Raised when the lockfile could not be regenerated after an apply."""


class PublishError(WshackError):
    """Raised when the publish workflow cannot be started."""


# --- User interaction / environment ----------------------------------------

class UserInputError(WshackError):
    """Raised for invalid option combinations or unreadable user input."""


class ToolNotFoundError(WshackError):
    """Raised when a required external tool (cargo) is not on PATH."""
