"""Line-oriented TOML helpers for Cargo manifests.

Manifests are edited as text, not round-tripped through a TOML
serializer, so hand-written formatting and comments outside the edited
lines survive untouched.  The helpers only understand the subset of TOML
that Cargo manifests use for dependency tables and workspace members:
``[table]`` headers, ``key = value`` lines, single-line inline tables
and string arrays.
"""

from __future__ import annotations

import fnmatch
import re
import tomllib
from collections.abc import Mapping, Sequence
from typing import Any

_BARE_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")
_HEADER_RE = re.compile(r"^\s*\[\[?\s*([^\[\]]+?)\s*\]\]?\s*(#.*)?$")

DEPENDENCIES_TABLE = "dependencies"
WORKSPACE_TABLE = "workspace"

_MEMBERS_RE = re.compile(r"^\s*members\s*=\s*\[")
_COMMENT_RE = re.compile(r"^(?P<body>[^#]*?)(?P<comment>\s*#.*)?$")


# ---------------------------------------------------------------------------
# Value formatting
# ---------------------------------------------------------------------------

def quote_string(value: str) -> str:
    """Return *value* as a basic TOML string literal."""
    escaped = (
        value.replace("\\", "\\\\")
        .replace("\t", "\\t")
        .replace("\r", "\\r")
        .replace("\n", "\\n")
        .replace('"', '\\"')
    )
    return f'"{escaped}"'


def format_key(key: str) -> str:
    """Format a TOML key, quoting it only when required."""
    if _BARE_KEY_RE.match(key):
        return key
    return quote_string(key)


def format_value(value: Any) -> str:
    """Render a str/bool/int/list/mapping value as inline TOML."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return quote_string(value)
    if isinstance(value, Sequence):
        return "[" + ", ".join(format_value(v) for v in value) + "]"
    if isinstance(value, Mapping):
        inner = ", ".join(
            f"{format_key(str(k))} = {format_value(v)}" for k, v in value.items()
        )
        return "{ " + inner + " }"
    raise TypeError(f"Unsupported TOML value type: {type(value).__name__}")


# ---------------------------------------------------------------------------
# Dependency-table editing
# ---------------------------------------------------------------------------

def _header_name(line: str) -> str | None:
    match = _HEADER_RE.match(line)
    if match is None:
        return None
    return ".".join(part.strip().strip('"') for part in match.group(1).split("."))


def _key_pattern(name: str) -> re.Pattern[str]:
    escaped = re.escape(name)
    return re.compile(rf'^\s*(?:{escaped}|"{escaped}")\s*[=.]')


def remove_dependency(text: str, name: str) -> str:
    """Remove *name* from the ``[dependencies]`` table of a manifest.

    The ``name = ...`` form, dotted ``name.key = ...`` lines and the
    ``[dependencies.name]`` table form are handled.  Returns *text* unchanged when the dependency is
    absent.
    """
    key_re = _key_pattern(name)
    own_table = f"{DEPENDENCIES_TABLE}.{name}"
    lines = text.splitlines(keepends=True)
    kept: list[str] = []
    current: str | None = None
    skipping_table = False

    for line in lines:
        header = _header_name(line)
        if header is not None:
            current = header
            skipping_table = header == own_table
            if skipping_table:
                continue
        elif skipping_table:
            continue
        elif current == DEPENDENCIES_TABLE and key_re.match(line):
            continue
        kept.append(line)

    return "".join(kept)


def has_dependency(text: str, name: str) -> bool:
    """Return whether the ``[dependencies]`` table declares *name*."""
    return remove_dependency(text, name) != text


def add_dependency(text: str, name: str, spec: Mapping[str, Any]) -> str:
    """Add ``name = { ...spec }`` to the ``[dependencies]`` table.

    The line is appended after the last entry of the existing table, or a
    new table is appended to the end of the file.  Idempotent: if *name*
    is already declared, *text* is returned unchanged.
    """
    if has_dependency(text, name):
        return text

    entry = f"{format_key(name)} = {format_value(spec)}\n"
    lines = text.splitlines(keepends=True)

    start: int | None = None
    end = len(lines)
    for index, line in enumerate(lines):
        header = _header_name(line)
        if header is None:
            continue
        if start is not None:
            end = index
            break
        if header == DEPENDENCIES_TABLE:
            start = index

    if start is None:
        prefix = text if not text or text.endswith("\n") else text + "\n"
        separator = "\n" if prefix else ""
        return f"{prefix}{separator}[{DEPENDENCIES_TABLE}]\n{entry}"

    insert_at = end
    while insert_at > start + 1 and not lines[insert_at - 1].strip():
        insert_at -= 1
    if insert_at > 0 and not lines[insert_at - 1].endswith("\n"):
        lines[insert_at - 1] += "\n"
    lines.insert(insert_at, entry)
    return "".join(lines)


# ---------------------------------------------------------------------------
# Workspace members
# ---------------------------------------------------------------------------

def _closing_bracket(line: str, start: int = 0) -> int:
    """Return the index of the first ``]`` after *start* outside a string, or -1."""
    quote: str | None = None
    for index in range(start, len(line)):
        char = line[index]
        if quote is not None:
            if char == quote:
                quote = None
        elif char in "\"'":
            quote = char
        elif char == "#":
            return -1
        elif char == "]":
            return index
    return -1


def _split_comment(line: str) -> tuple[str, str, str]:
    """Split a line into (body, trailing comment, line ending)."""
    content = line.rstrip("\r\n")
    match = _COMMENT_RE.match(content)
    body = match.group("body") if match else content
    comment = (match.group("comment") or "") if match else ""
    return body, comment, line[len(content):]


def _insert_member(lines: list[str], start: int, item: str) -> None:
    """Insert *item* into the array whose ``[`` opens on line *start*."""
    opening = lines[start].index("[") + 1
    for end in range(start, len(lines)):
        line = lines[end]
        offset = _closing_bracket(line, opening if end == start else 0)
        if offset == -1:
            continue

        before = line[:offset].rstrip()
        if end == start or before.strip():
            if before.endswith("["):
                lines[end] = f"{before}{item}{line[offset:]}"
            else:
                comma = "" if before.endswith(",") else ","
                lines[end] = f"{before}{comma} {item}{line[offset:]}"
            return

        previous = end - 1
        while previous > start and not _split_comment(lines[previous])[0].strip():
            previous -= 1
        body, comment, newline = _split_comment(lines[previous])
        if not body.rstrip().endswith(("[", ",")):
            lines[previous] = f"{body.rstrip()},{comment}{newline}"
        if previous == start:
            indent = "    "
        else:
            indent = lines[previous][: len(lines[previous]) - len(lines[previous].lstrip())]
        lines.insert(end, f"{indent}{item},\n")
        return
    raise ValueError("unterminated workspace members array")


def is_workspace_member(text: str, member: str) -> bool:
    """Return whether ``[workspace] members`` lists or globs *member*.

    Raises
    ------
    ValueError
        If *text* is not valid TOML.
    """
    workspace = tomllib.loads(text).get(WORKSPACE_TABLE)
    if not isinstance(workspace, dict):
        return False
    return any(
        isinstance(pattern, str)
        and (pattern.rstrip("/") == member or fnmatch.fnmatchcase(member, pattern))
        for pattern in workspace.get("members") or []
    )


def add_workspace_member(text: str, member: str) -> str:
    """Append *member* to the ``members`` array of the ``[workspace]`` table.

    Single-line and multi-line arrays keep their layout; a missing
    ``members`` key or ``[workspace]`` table is created.  Idempotent: a
    member already listed, or matched by a glob, leaves *text* unchanged.

    Raises
    ------
    ValueError
        If *text* is not valid TOML, or the workspace members are declared
        in a form the line editor cannot find (such as a dotted
        ``workspace.members`` key).
    """
    if is_workspace_member(text, member):
        return text

    item = quote_string(member)
    lines = text.splitlines(keepends=True)
    table_start: int | None = None
    current: str | None = None

    for index, line in enumerate(lines):
        header = _header_name(line)
        if header is not None:
            current = header
            if header == WORKSPACE_TABLE and table_start is None:
                table_start = index
        elif current == WORKSPACE_TABLE and _MEMBERS_RE.match(line):
            _insert_member(lines, index, item)
            return "".join(lines)

    workspace = tomllib.loads(text).get(WORKSPACE_TABLE)
    if table_start is not None and "members" not in workspace:
        if not lines[table_start].endswith("\n"):
            lines[table_start] += "\n"
        lines.insert(table_start + 1, f"members = [{item}]\n")
        return "".join(lines)
    if workspace is not None:
        raise ValueError("workspace members are not declared as a 'members = [...]' line")

    prefix = text if not text or text.endswith("\n") else text + "\n"
    separator = "\n" if prefix else ""
    return f"{prefix}{separator}[{WORKSPACE_TABLE}]\nmembers = [{item}]\n"
