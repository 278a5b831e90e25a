"""Raw ``cargo metadata`` dict → :class:`WorkspaceGraph` parser.

Guarantees
----------
* Pure transformation: no I/O, no subprocesses.
* Malformed input raises :class:`GraphError`, never ``KeyError``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from wshack.core.models import DependencyDecl, PackageMetadata, WorkspaceGraph
from wshack.exceptions import GraphError


def build_graph(raw: dict[str, Any]) -> WorkspaceGraph:
    """Convert decoded ``cargo metadata`` output into a graph snapshot.

    Raises
    ------
    GraphError
        If required keys are missing or a workspace member is not among
        the listed packages.
    """
    try:
        root = Path(str(raw["workspace_root"]))
        raw_packages = raw["packages"]
        members = tuple(str(member) for member in raw["workspace_members"])
    except (KeyError, TypeError) as exc:
        raise GraphError(f"malformed workspace metadata: missing {exc}") from exc

    if not isinstance(raw_packages, list):
        raise GraphError("malformed workspace metadata: 'packages' is not a list")

    packages: dict[str, PackageMetadata] = {}
    for entry in raw_packages:
        if not isinstance(entry, dict):
            continue
        package = _parse_package(entry)
        packages[package.id] = package

    unknown = [member for member in members if member not in packages]
    if unknown:
        raise GraphError(
            "workspace members missing from package list: " + ", ".join(unknown),
        )

    return WorkspaceGraph(workspace_root=root, packages=packages, members=members)


def _parse_package(entry: dict[str, Any]) -> PackageMetadata:
    try:
        package_id = str(entry["id"])
        name = str(entry["name"])
        version = str(entry["version"])
        manifest_path = Path(str(entry["manifest_path"]))
    except KeyError as exc:
        raise GraphError(f"package entry is missing {exc}") from exc

    raw_deps = entry.get("dependencies")
    deps = raw_deps if isinstance(raw_deps, list) else []
    return PackageMetadata(
        id=package_id,
        name=name,
        version=version,
        source=entry.get("source"),
        manifest_path=manifest_path,
        dependencies=tuple(_parse_dependency(dep) for dep in deps if isinstance(dep, dict)),
    )


def _parse_dependency(raw: dict[str, Any]) -> DependencyDecl:
    features = raw.get("features") or []
    return DependencyDecl(
        name=str(raw.get("name", "")),
        source=raw.get("source"),
        kind=str(raw.get("kind") or "normal"),
        features=tuple(str(feature) for feature in features),
        uses_default_features=bool(raw.get("uses_default_features", True)),
        target=_optional_str(raw.get("target")),
        rename=_optional_str(raw.get("rename")),
    )


def _optional_str(value: Any) -> str | None:
    return str(value) if value else None
