"""Resolve user-supplied paths against the workspace root."""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath

from wshack.exceptions import InvalidEncoding, PathOutsideWorkspace


def resolve(
    path: str | Path,
    workspace_root: Path,
    cwd: Path | None = None,
) -> PurePosixPath:
    """Return *path* relative to *workspace_root*.

    Relative paths are interpreted against *cwd* (the process working
    directory by default).  The joined path is normalised lexically, so
    ``..`` components are collapsed before the containment check.

    Raises
    ------
    InvalidEncoding
        If the path (or the working directory) is not valid UTF-8.
    PathOutsideWorkspace
        If the resulting path is not *workspace_root* or below it.
    """
    candidate = Path(path)
    if not candidate.is_absolute():
        base = cwd if cwd is not None else Path.cwd()
        candidate = base / candidate

    absolute = Path(os.path.normpath(candidate))
    root = Path(os.path.normpath(workspace_root))

    try:
        str(absolute).encode("utf-8")
    except UnicodeEncodeError as exc:
        raise InvalidEncoding(
            f"path {absolute!r} is not valid UTF-8",
        ) from exc

    try:
        relative = absolute.relative_to(root)
    except ValueError as exc:
        raise PathOutsideWorkspace(absolute, root) from exc

    return PurePosixPath(relative.as_posix())
