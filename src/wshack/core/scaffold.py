"""Plan creation of a new workspace-hack package (``wshack init``)."""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from wshack.core.config import DEFAULT_CONFIG_PATH, FALLBACK_CONFIG_PATH, stub_config
from wshack.core.differ import MANIFEST_COMMENT, empty_region_manifest
from wshack.core.models import Operation, OperationKind, Plan, WorkspaceGraph
from wshack.exceptions import ConfigAlreadyExists, InvalidPackageName, PackageAlreadyExists
from wshack.utils.toml_text import quote_string

_PACKAGE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]{0,63}$")

LIB_RS = "// This is a stub lib.rs.\n"
BUILD_RS = "// A build script is required for cargo to consider build dependencies.\nfn main() {}\n"
GITATTRIBUTES = """\
# Avoid putting conflict markers in the generated Cargo.toml file, since their presence breaks
# Cargo.
# Also do not check out the file as CRLF on Windows, as that's what wshack generates.
Cargo.toml merge=binary -crlf
"""


def validate_package_name(name: str) -> str:
    """Return *name* unchanged if it is a valid Cargo package name."""
    if not _PACKAGE_NAME_RE.match(name):
        raise InvalidPackageName(
            f"invalid package name '{name}'",
            hint="Use ASCII letters, digits, '-' and '_', not starting with a digit.",
        )
    return name


def skeleton_manifest(name: str) -> str:
    """Return the Cargo.toml of a freshly initialised workspace-hack."""
    header = (
        f"{MANIFEST_COMMENT}\n"
        "[package]\n"
        f"name = {quote_string(name)}\n"
        'version = "0.1.0"\n'
        'edition = "2021"\n'
        f"description = {quote_string('workspace-hack package, managed by wshack')}\n"
        "publish = false\n"
        "\n"
        "# The parts of the file between the BEGIN and END markers are managed by wshack.\n"
        "# Everything else can be edited by hand."
    )
    return empty_region_manifest(header)


def init_plan(
    graph: WorkspaceGraph,
    path: PurePosixPath,
    package_name: str | None = None,
    include_config: bool = True,
) -> Plan:
    """Plan the skeleton (and stub config) of a new workspace-hack package.

    Parameters
    ----------
    graph:
        Current workspace graph.
    path:
        Workspace-relative directory of the new package.
    package_name:
        Explicit name; defaults to the last component of *path*.
    include_config:
        Also write a stub config at :data:`DEFAULT_CONFIG_PATH`.

    Raises
    ------
    InvalidPackageName
        If the name is empty or breaks Cargo's naming rules.
    PackageAlreadyExists
        If *path* is populated or a member already uses the name.
    ConfigAlreadyExists
        If a config would be written but one is already present.
    """
    name = package_name if package_name is not None else path.name
    if not name:
        raise InvalidPackageName(
            f"cannot derive a package name from path '{path}'",
            hint="Pass --package-name explicitly.",
        )
    validate_package_name(name)

    target = graph.workspace_root / path
    if target.exists() and (not target.is_dir() or any(target.iterdir())):
        raise PackageAlreadyExists(
            f"{path} already exists and is not empty",
            hint="Choose an empty or non-existent directory.",
        )
    if graph.member_by_name(name) is not None:
        raise PackageAlreadyExists(
            f"a workspace package named '{name}' already exists",
            hint="Pass a different --package-name.",
        )

    operations = [
        Operation(
            kind=OperationKind.CREATE_PACKAGE,
            path=path,
            package=name,
            files=(
                ("Cargo.toml", skeleton_manifest(name)),
                ("src/lib.rs", LIB_RS),
                ("build.rs", BUILD_RS),
                (".gitattributes", GITATTRIBUTES),
            ),
        )
    ]

    if include_config:
        for candidate in (DEFAULT_CONFIG_PATH, FALLBACK_CONFIG_PATH):
            if (graph.workspace_root / candidate).exists():
                raise ConfigAlreadyExists(
                    f"config already exists at {candidate}",
                    hint="Pass --skip-config to keep the existing config.",
                )
        operations.append(
            Operation(
                kind=OperationKind.WRITE_FILE,
                path=DEFAULT_CONFIG_PATH,
                contents=stub_config(name),
            )
        )

    return Plan(tuple(operations))
