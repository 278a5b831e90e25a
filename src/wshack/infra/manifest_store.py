"""Filesystem implementation of :class:`~wshack.core.protocols.ManifestStore`.

This module is the **only** place that writes to the workspace.  Each
file is written through a temporary sibling and ``os.replace`` so a
single manifest is never left half-written.  Every ``OSError`` is
re-raised as :class:`~wshack.exceptions.ManifestError` with the path
that failed.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path, PurePosixPath

from wshack.core.differ import parse_manifest, replace_region
from wshack.core.models import HackManifest, Operation, OperationKind, PackageMetadata
from wshack.exceptions import ManifestError
from wshack.utils.toml_text import add_dependency, add_workspace_member, remove_dependency

logger = logging.getLogger(__name__)


def read_text(path: Path) -> str:
    """Read a UTF-8 text file, mapping failures to :class:`ManifestError`."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ManifestError(f"error reading {path}: {exc}") from exc


def write_text(path: Path, contents: str) -> None:
    """Atomically replace *path* with *contents*."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
                handle.write(contents)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise ManifestError(f"error writing {path}: {exc}") from exc


class FileManifestStore:
    """Concrete :class:`ManifestStore` rooted at the workspace directory.

    Parameters
    ----------
    workspace_root:
        Absolute workspace root; operation paths are relative to it.
    """

    def __init__(self, workspace_root: Path) -> None:
        self._root: Path = workspace_root

    # ------------------------------------------------------------------
    # Generated region
    # ------------------------------------------------------------------

    def read_hack_manifest(self, package: PackageMetadata) -> HackManifest:
        return parse_manifest(read_text(package.manifest_path), package.manifest_path)

    def write_region(self, manifest: HackManifest, contents: str) -> None:
        write_text(manifest.path, replace_region(manifest, contents))

    # ------------------------------------------------------------------
    # Plan operations
    # ------------------------------------------------------------------

    def apply(self, operation: Operation) -> None:
        """Perform *operation*; re-applying an applied operation is a no-op."""
        target = self._root / operation.path

        if operation.kind is OperationKind.CREATE_PACKAGE:
            for relative, contents in operation.files:
                self._write_if_different(target / relative, contents)
            self._register_member(operation.path)
            return

        if operation.kind is OperationKind.WRITE_FILE:
            self._write_if_different(target, operation.contents or "")
            return

        if operation.dependency is None:
            raise ManifestError(f"edge operation on {target} names no dependency")

        text = read_text(target)
        if operation.kind is OperationKind.ADD_EDGE:
            updated = add_dependency(text, operation.dependency, dict(operation.dependency_spec))
        elif operation.kind is OperationKind.REMOVE_EDGE:
            updated = remove_dependency(text, operation.dependency)
        else:
            raise ManifestError(f"unsupported operation: {operation.kind}")

        if updated != text:
            write_text(target, updated)
        else:
            logger.debug("%s already up to date", target)

    def _register_member(self, member: PurePosixPath) -> None:
        """Add *member* to ``[workspace] members`` in the root manifest."""
        root_manifest = self._root / "Cargo.toml"
        text = read_text(root_manifest)
        try:
            updated = add_workspace_member(text, str(member))
        except ValueError as exc:
            raise ManifestError(
                f"cannot add {member} to the workspace members in {root_manifest}: {exc}",
                hint=f"Add '{member}' to [workspace] members by hand.",
            ) from exc
        if updated != text:
            write_text(root_manifest, updated)
        else:
            logger.debug("%s is already a workspace member", member)

    @staticmethod
    def _write_if_different(path: Path, contents: str) -> None:
        if path.is_file() and read_text(path) == contents:
            logger.debug("%s already up to date", path)
            return
        write_text(path, contents)
