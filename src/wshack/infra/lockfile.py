"""Cargo-backed implementation of :class:`~wshack.core.protocols.LockRegenerator`."""

from __future__ import annotations

import logging
from pathlib import Path

from wshack.exceptions import LockRegenerationFailed, ToolNotFoundError
from wshack.infra.cargo import run_cargo

logger = logging.getLogger(__name__)


class CargoLockRegenerator:
    """Re-derive ``Cargo.lock`` after manifests change.

    ``cargo update --workspace`` only touches workspace entries of the
    lockfile, so third-party versions stay pinned.
    """

    def __init__(self, workspace_root: Path) -> None:
        self._root: Path = workspace_root

    def regenerate(self) -> None:
        """Run the lockfile update.

        Raises
        ------
        LockRegenerationFailed
            When cargo is missing or exits with a non-zero status.
        """
        logger.info("regenerating Cargo.lock")
        try:
            result = run_cargo(["update", "--workspace"], self._root)
        except ToolNotFoundError as exc:
            raise LockRegenerationFailed(
                f"lockfile regeneration failed: {exc}",
                hint=exc.hint,
            ) from exc

        if result.returncode != 0:
            raise LockRegenerationFailed(
                f"lockfile regeneration failed: cargo update exited with "
                f"status {result.returncode}\n{result.stderr.strip()}",
                hint="Run `cargo update --workspace` manually to refresh Cargo.lock.",
            )
