"""Publish a package without its workspace-hack dependency.

Published packages must not depend on the workspace-hack (it is never
published itself).  :class:`CargoPublisher` removes the dependency line
from the package manifest, runs ``cargo publish`` and restores the
original manifest text whenever cargo returns, fails or is
interrupted.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from wshack.core.models import PackageMetadata
from wshack.exceptions import PublishError
from wshack.infra.cargo import run_cargo
from wshack.infra.manifest_store import read_text, write_text
from wshack.utils.toml_text import remove_dependency

logger = logging.getLogger(__name__)


@contextmanager
def detached_dependency(manifest_path: Path, dependency: str) -> Iterator[bool]:
    """Temporarily remove *dependency* from the manifest at *manifest_path*.

    Yields whether anything was removed.  The original text is written
    back when the block exits, however it exits.
    """
    original = read_text(manifest_path)
    detached = remove_dependency(original, dependency)
    if detached == original:
        yield False
        return

    write_text(manifest_path, detached)
    logger.info("temporarily removed %s from %s", dependency, manifest_path)
    try:
        yield True
    finally:
        write_text(manifest_path, original)
        logger.info("restored %s in %s", dependency, manifest_path)


class CargoPublisher:
    """Concrete :class:`~wshack.core.protocols.Publisher` backed by ``cargo publish``.

    Parameters
    ----------
    workspace_root:
        Directory ``cargo publish`` runs in.
    hack_package:
        The workspace-hack package whose edge is detached while publishing.
    """

    def __init__(self, workspace_root: Path, hack_package: PackageMetadata) -> None:
        self._root: Path = workspace_root
        self._hack: PackageMetadata = hack_package

    @staticmethod
    def _build_args(package: str, pass_through: Sequence[str]) -> list[str]:
        """Return ``cargo publish`` arguments.

        ``--allow-dirty`` is required because the manifest is modified
        for the duration of the publish.
        """
        args = ["publish", "-p", package]
        if "--allow-dirty" not in pass_through:
            args.append("--allow-dirty")
        args.extend(pass_through)
        return args

    def publish(self, package: PackageMetadata, pass_through: Sequence[str]) -> int:
        """Publish *package* and return cargo's exit status.

        Raises
        ------
        PublishError
            If *package* is the workspace-hack itself.
        """
        if package.id == self._hack.id:
            raise PublishError(
                f"{package.name} is the workspace-hack package and cannot be published",
            )

        with detached_dependency(package.manifest_path, self._hack.name) as detached:
            if not detached:
                logger.info("%s does not depend on %s", package.name, self._hack.name)
            result = run_cargo(self._build_args(package.name, pass_through), self._root, capture=False)

        if result.returncode != 0:
            logger.error("cargo publish exited with status %d", result.returncode)
        return result.returncode
