"""Infrastructure: cargo detection and subprocess invocation.

This module is responsible for locating ``cargo`` on the system PATH,
providing installation guidance when it is missing, and running cargo
subcommands synchronously.

Rules
-----
* Detection via :func:`shutil.which`.
* No ``print()``; callers handle user-facing output.
* ``OSError`` from process creation never escapes; it is mapped to
  :class:`~wshack.exceptions.ToolNotFoundError`.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from wshack.exceptions import ToolNotFoundError

logger = logging.getLogger(__name__)

_INSTALL_HINT = "Install Rust with rustup: https://rustup.rs"


# ---------------------------------------------------------------------------
# Detection result
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class CargoStatus:
    """Result of looking up the cargo binary.

    Attributes
    ----------
    found : bool
        Whether cargo was located on PATH.
    path : Path | None
        Absolute path to the cargo binary, or ``None``.
    """

    found: bool
    path: Path | None


def detect_cargo() -> CargoStatus:
    """Look for a cargo binary on PATH."""
    result = shutil.which("cargo")
    if result is None:
        return CargoStatus(found=False, path=None)
    return CargoStatus(found=True, path=Path(result).resolve())


def require_cargo() -> Path:
    """Locate cargo or raise :class:`ToolNotFoundError`."""
    status = detect_cargo()
    if not status.found or status.path is None:
        raise ToolNotFoundError("cargo is not installed or not on PATH.", hint=_INSTALL_HINT)
    return status.path


# ---------------------------------------------------------------------------
# Invocation
# ---------------------------------------------------------------------------

def run_cargo(
    args: Sequence[str],
    cwd: Path,
    *,
    capture: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run ``cargo <args>`` in *cwd* and return the completed process.

    A non-zero exit status is **not** an error here; callers decide how
    to interpret it.  With ``capture=False`` output streams straight to
    the terminal (used for ``cargo publish``).
    """
    cargo = require_cargo()
    command = [str(cargo), *args]
    logger.debug("running %s in %s", " ".join(command), cwd)
    try:
        return subprocess.run(
            command,
            cwd=cwd,
            check=False,
            text=True,
            capture_output=capture,
        )
    except OSError as exc:
        raise ToolNotFoundError(f"could not run cargo: {exc}", hint=_INSTALL_HINT) from exc
