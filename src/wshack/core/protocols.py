"""Protocols (interfaces) consumed by the core layer.

These define the contracts that infrastructure adapters must satisfy.
Core code depends ONLY on these protocols, never on concrete
implementations, so tests can substitute deterministic stubs.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any, Protocol

from wshack.core.models import HackManifest, Operation, PackageMetadata

Confirm = Callable[[str], bool]
"""Ask a yes/no question; raise :class:`UserInputError` on unreadable input."""

AfterApply = Callable[[], None]
"""Side effect run once a plan or a region write has been applied."""


class MetadataProvider(Protocol):
    """Contract for workspace metadata backends."""

    def fetch_metadata(self, manifest_dir: Path) -> dict[str, Any]:
        """Return raw ``cargo metadata --format-version 1`` output as a dict.

        Raises
        ------
        GraphError
            When metadata cannot be produced or decoded.
        ToolNotFoundError
            When the backend tool is not installed.
        """
        ...  # pragma: no cover


class ManifestStore(Protocol):
    """Contract for reading, writing and editing manifests on disk."""

    def read_hack_manifest(self, package: PackageMetadata) -> HackManifest:
        """Read the aggregation manifest and split out its generated region.

        Raises
        ------
        ManifestError
            When the file is unreadable or the region markers are missing.
        """
        ...  # pragma: no cover

    def write_region(self, manifest: HackManifest, contents: str) -> None:
        """Replace the generated region of *manifest* with *contents*."""
        ...  # pragma: no cover

    def apply(self, operation: Operation) -> None:
        """Perform a single plan operation.  Must be idempotent."""
        ...  # pragma: no cover


class LockRegenerator(Protocol):
    """Contract for re-deriving the workspace lockfile after a change."""

    def regenerate(self) -> None:
        """Regenerate the lockfile.

        Raises
        ------
        LockRegenerationFailed
            When the lockfile could not be updated.
        """
        ...  # pragma: no cover


class Publisher(Protocol):
    """Contract for publishing a package without its aggregation edge.

    Implementations must restore the edge on every path, including a
    failed or interrupted publish.
    """

    def publish(self, package: PackageMetadata, pass_through: Sequence[str]) -> int:
        """Publish *package* and return the publish process's exit status."""
        ...  # pragma: no cover
