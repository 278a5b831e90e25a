"""Generated-region handling: split, replace, compare and diff.

The generated region of the aggregation manifest sits between two marker
lines.  Everything outside the markers is hand-written and is never
touched by regeneration.

Comparison is semantic: trailing whitespace, blank lines and full-line
comments are ignored.  The unified diff is computed over the same
normalised lines, so a diff has no hunks exactly when
:func:`is_changed` is ``False``.
"""

from __future__ import annotations

import difflib
from pathlib import Path

from wshack.core.models import HackManifest, ManifestDiff
from wshack.exceptions import ManifestError

BEGIN_MARKER = "### BEGIN WSHACK SECTION"
END_MARKER = "### END WSHACK SECTION"

MANIFEST_COMMENT = """\
# This file is generated by `wshack`.
# To regenerate, run:
#     wshack generate
"""

DISABLE_MESSAGE = """
# Disabled by running `wshack disable`.
# To re-enable, run:
#     wshack generate
"""


# ---------------------------------------------------------------------------
# Region extraction
# ---------------------------------------------------------------------------

def split_region(text: str, path: Path) -> tuple[str, str, str]:
    """Split *text* into (before, region, after).

    ``before`` ends with the begin-marker line and ``after`` starts with
    the end-marker line, so ``before + region + after == text``.

    Raises
    ------
    ManifestError
        If either marker is missing or they appear out of order.
    """
    lines = text.splitlines(keepends=True)
    begin = end = None
    for index, line in enumerate(lines):
        stripped = line.strip()
        if stripped == BEGIN_MARKER and begin is None:
            begin = index
        elif stripped == END_MARKER and begin is not None:
            end = index
            break

    if begin is None or end is None:
        raise ManifestError(
            f"generated section markers not found in {path}",
            hint=f"The manifest must contain '{BEGIN_MARKER}' followed by '{END_MARKER}'.",
        )

    before = "".join(lines[: begin + 1])
    region = "".join(lines[begin + 1 : end])
    after = "".join(lines[end:])
    return before, region, after


def parse_manifest(text: str, path: Path) -> HackManifest:
    """Build a :class:`HackManifest` from raw file *text*."""
    _, region, _ = split_region(text, path)
    return HackManifest(path=path, text=text, region=region)


def replace_region(manifest: HackManifest, contents: str) -> str:
    """Return the full manifest text with the region set to *contents*."""
    before, _, after = split_region(manifest.text, manifest.path)
    if contents and not contents.endswith("\n"):
        contents += "\n"
    return before + contents + after


def empty_region_manifest(header: str) -> str:
    """Return *header* followed by an empty generated region."""
    return f"{header}\n{BEGIN_MARKER}\n{END_MARKER}\n"


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------

def normalize_region(contents: str) -> list[str]:
    """Return the semantically relevant lines of a region."""
    normalized: list[str] = []
    for line in contents.splitlines():
        stripped = line.rstrip()
        if not stripped.strip() or stripped.lstrip().startswith("#"):
            continue
        normalized.append(stripped)
    return normalized


def is_changed(manifest: HackManifest, new_contents: str) -> bool:
    return normalize_region(manifest.region) != normalize_region(new_contents)


def diff_region(manifest: HackManifest, new_contents: str) -> ManifestDiff:
    """Compute the unified diff from the current region to *new_contents*."""
    label = str(manifest.path)
    lines = difflib.unified_diff(
        normalize_region(manifest.region),
        normalize_region(new_contents),
        fromfile=f"{label} (current)",
        tofile=f"{label} (new)",
        lineterm="",
    )
    return ManifestDiff(path=manifest.path, lines=tuple(lines))
