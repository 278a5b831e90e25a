"""Domain models for wshack.

All models are **frozen** dataclasses: immutable value objects with no
behaviour beyond data access and plain-text description.  They carry zero
I/O and must remain pure across the entire lifecycle of a command.
"""

from __future__ import annotations

import enum
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from types import MappingProxyType

PackageId = str
"""Opaque ``cargo metadata`` package id; unique within one graph."""

DEFAULT_FEATURE = "default"


# ---------------------------------------------------------------------------
# Workspace graph
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class DependencyDecl:
    """One dependency as declared in a package manifest."""

    name: str
    """Name of the depended-on package (not the rename)."""

    source: str | None
    """``registry+…``/``sparse+…``/``git+…`` URL, or ``None`` for path deps."""

    kind: str = "normal"
    """``normal``, ``dev`` or ``build``."""

    features: tuple[str, ...] = ()
    uses_default_features: bool = True
    target: str | None = None
    """Platform ``cfg`` expression for ``[target.*]`` declarations."""

    rename: str | None = None
    """Key used in the manifest when it differs from ``name``."""

    def feature_set(self) -> frozenset[str]:
        """Return the feature set this declaration builds the dependency with."""
        features = set(self.features)
        if self.uses_default_features:
            features.add(DEFAULT_FEATURE)
        return frozenset(features)


@dataclass(frozen=True, slots=True)
class PackageMetadata:
    """A single package known to the graph (workspace member or not)."""

    id: PackageId
    name: str
    version: str
    source: str | None
    manifest_path: Path
    dependencies: tuple[DependencyDecl, ...] = ()


@dataclass(frozen=True, slots=True)
class WorkspaceGraph:
    """Immutable snapshot of the workspace and every package it resolves.

    Built once per invocation; no component mutates it afterwards.
    """

    workspace_root: Path
    packages: Mapping[PackageId, PackageMetadata]
    members: tuple[PackageId, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "packages", MappingProxyType(dict(self.packages)))

    def package(self, package_id: PackageId) -> PackageMetadata:
        return self.packages[package_id]

    def member_ids(self) -> frozenset[PackageId]:
        return frozenset(self.members)

    def member_by_name(self, name: str) -> PackageMetadata | None:
        """Return the workspace member called *name*, if any."""
        for package_id in self.members:
            package = self.packages[package_id]
            if package.name == name:
                return package
        return None

    def resolved_versions(self, name: str, source: str | None) -> list[str]:
        """Return every resolved version of (*name*, *source*) in the graph."""
        return [
            package.version
            for package in self.packages.values()
            if package.name == name and package.source == source
        ]

    def has_edge(self, from_id: PackageId, to_id: PackageId) -> bool:
        """Return whether *from_id* lists *to_id* under its plain ``[dependencies]``.

        Dev, build, target-specific and renamed declarations do not count:
        they are not the edge that ``manage-deps`` writes and removes.
        """
        target = self.packages[to_id]
        return any(
            dep.name == target.name
            and dep.source is None
            and dep.kind == "normal"
            and dep.target is None
            and dep.rename is None
            for dep in self.packages[from_id].dependencies
        )


@dataclass(frozen=True, slots=True)
class PackageSet:
    """A set of workspace member ids drawn from one :class:`WorkspaceGraph`."""

    ids: frozenset[PackageId]
    explicit: bool = False
    """True when the user named the packages rather than taking the default."""

    def __contains__(self, package_id: object) -> bool:
        return package_id in self.ids

    def __iter__(self) -> Iterator[PackageId]:
        return iter(sorted(self.ids))

    def __len__(self) -> int:
        return len(self.ids)


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

class OperationKind(enum.Enum):
    """The closed set of mutations a plan may contain."""

    CREATE_PACKAGE = "create-package"
    WRITE_FILE = "write-file"
    ADD_EDGE = "add-edge"
    REMOVE_EDGE = "remove-edge"


@dataclass(frozen=True, slots=True)
class Operation:
    """A single mutation within a :class:`Plan` (explicit fields, no args dict).

    ``path`` is always workspace-relative: the package directory for
    ``CREATE_PACKAGE`` (which also adds it to ``[workspace] members``),
    the file for ``WRITE_FILE`` and the dependent package's manifest for
    edge operations.
    """

    kind: OperationKind
    path: PurePosixPath
    package: str | None = None
    """Package created (``CREATE_PACKAGE``) or edited (edge operations)."""

    dependency: str | None = None
    """Name of the aggregation package, for edge operations."""

    dependency_spec: tuple[tuple[str, str], ...] = ()
    """Inline-table fields of the added dependency line (``ADD_EDGE``)."""

    contents: str | None = None
    """File contents for ``WRITE_FILE``."""

    files: tuple[tuple[str, str], ...] = ()
    """(relative path, contents) pairs for ``CREATE_PACKAGE``."""

    def describe(self) -> str:
        """Return a one-line human-readable description."""
        if self.kind is OperationKind.CREATE_PACKAGE:
            return f"create package {self.package} at {self.path} and add it to the workspace members"
        if self.kind is OperationKind.WRITE_FILE:
            return f"write {self.path}"
        if self.kind is OperationKind.ADD_EDGE:
            return f"add dependency {self.dependency} to {self.package} ({self.path})"
        return f"remove dependency {self.dependency} from {self.package} ({self.path})"


@dataclass(frozen=True, slots=True)
class Plan:
    """Ordered, idempotent sequence of operations.

    An empty plan means the workspace is already converged.
    """

    operations: tuple[Operation, ...] = ()

    def __len__(self) -> int:
        return len(self.operations)

    def __bool__(self) -> bool:
        return len(self.operations) > 0

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def describe(self) -> str:
        """Render the numbered plan listing, preserving order."""
        return "\n".join(
            f"{index:>3}. {op.describe()}"
            for index, op in enumerate(self.operations, start=1)
        )


# ---------------------------------------------------------------------------
# Manifests and diffs
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class HackManifest:
    """The aggregation package's manifest as read from disk."""

    path: Path
    text: str
    region: str
    """Contents between the generated-region markers (exclusive)."""


@dataclass(frozen=True, slots=True)
class ManifestDiff:
    """Unified diff between an existing generated region and new contents."""

    path: Path
    lines: tuple[str, ...]

    @property
    def hunks(self) -> int:
        return sum(1 for line in self.lines if line.startswith("@@"))

    def __bool__(self) -> bool:
        return self.hunks > 0

    def render(self) -> str:
        return "\n".join(self.lines)


# ---------------------------------------------------------------------------
# Generated output, verification and explanation
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class HackDependency:
    """One third-party dependency unified through the aggregation package."""

    name: str
    version: str
    source: str | None
    features: tuple[str, ...]
    """Union of non-default features, sorted."""

    default_features: bool
    feature_sets: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...]
    """(sorted feature set, sorted workspace package names) pairs."""


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    """A dependency still built with more than one feature set."""

    dependency: str
    feature_sets: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...]


@dataclass(frozen=True, slots=True)
class Explanation:
    """Why a dependency is present in the aggregation package."""

    dependency: str
    version: str
    feature_sets: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...]


@dataclass(frozen=True, slots=True)
class OutputOptions:
    """Formatting options for generated contents."""

    exact_versions: bool = False


# ---------------------------------------------------------------------------
# Run outcome
# ---------------------------------------------------------------------------

class OutcomeKind(enum.Enum):
    """Every way a single command invocation can end."""

    NO_OP = "no-op"
    APPLIED = "applied"
    PENDING_DRY_RUN = "pending-dry-run"
    DECLINED = "declined"
    DIFFERENCES_PRESENT = "differences-present"
    VALIDATION_FAILED = "validation-failed"
    UNRECOGNIZED_REGISTRY = "unrecognized-registry"
    DELEGATED = "delegated"


@dataclass(frozen=True, slots=True)
class RunOutcome:
    """Result of one command; maps deterministically to an exit code."""

    kind: OutcomeKind
    status: int | None = None
    """Exit status reported by a delegated collaborator (``DELEGATED``)."""

    reason: str | None = None
    """Why the command stopped short (``UNRECOGNIZED_REGISTRY``)."""

    warnings: tuple[str, ...] = field(default=())

    @classmethod
    def delegated(cls, status: int) -> RunOutcome:
        return cls(OutcomeKind.DELEGATED, status=status)
