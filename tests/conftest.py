"""Shared pytest fixtures and configuration for the wshack test suite.

Guidelines
----------
* No network access and no real ``cargo`` in any test.
* Workspaces are built under ``tmp_path`` with the :class:`WorkspaceFactory`
  fixture; graphs are constructed directly instead of via ``cargo metadata``.
* Core tests must be pure; filesystem effects only go through ``infra``.
"""

from __future__ import annotations

import dataclasses
import logging
import tomllib
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from wshack.cli import console as console_module
from wshack.core.config import DEFAULT_CONFIG_PATH
from wshack.core.models import DependencyDecl, PackageMetadata, WorkspaceGraph
from wshack.core.scaffold import skeleton_manifest

CRATES_IO = "registry+https://github.com/rust-lang/crates.io-index"
HACK_NAME = "workspace-hack"

_DEPENDENCY_TABLES = {"dependencies": "normal", "dev-dependencies": "dev", "build-dependencies": "build"}


def dep(
    name: str,
    *features: str,
    source: str | None = CRATES_IO,
    default: bool = True,
    kind: str = "normal",
) -> DependencyDecl:
    """Factory for a third-party dependency declaration."""
    return DependencyDecl(
        name=name,
        source=source,
        kind=kind,
        features=features,
        uses_default_features=default,
    )


class WorkspaceFactory:
    """Build a workspace on disk plus the graph ``cargo metadata`` would report.

    Members live under ``crates/<name>``; the workspace-hack lives under
    ``workspace-hack``.  Packages are registered in creation order and the
    root ``Cargo.toml`` lists every member registered so far.
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self._packages: dict[str, PackageMetadata] = {}
        self._members: list[str] = []
        self._member_paths: list[str] = []
        self._write_root()

    dep = staticmethod(dep)

    # -- packages ----------------------------------------------------------

    def hack(self, name: str = HACK_NAME, region: str = "") -> PackageMetadata:
        """Create the workspace-hack package with *region* as its generated contents."""
        directory = self.root / name
        directory.mkdir(parents=True, exist_ok=True)
        text = skeleton_manifest(name)
        if region:
            text = text.replace("### END", region + "### END", 1)
        (directory / "Cargo.toml").write_text(text, encoding="utf-8")
        return self._register(name, "0.1.0", directory, (), member=True)

    def member(
        self,
        name: str,
        *deps: DependencyDecl,
        hack_edge: bool = False,
        hack_name: str = HACK_NAME,
        extra: str = "",
    ) -> PackageMetadata:
        """Create a workspace member, optionally already depending on the hack.

        *extra* is appended verbatim to the manifest; it is only reflected in
        the graph returned by :meth:`reload`.
        """
        directory = self.root / "crates" / name
        directory.mkdir(parents=True, exist_ok=True)
        lines = ["[package]", f'name = "{name}"', 'version = "0.1.0"', "", "[dependencies]"]
        for decl in deps:
            lines.append(f'{decl.name} = "1"')
        all_deps = list(deps)
        if hack_edge:
            lines.append(f'{hack_name} = {{ version = "0.1.0", path = "../../{hack_name}" }}')
            all_deps.append(DependencyDecl(name=hack_name, source=None))
        text = "\n".join(lines) + "\n" + extra
        (directory / "Cargo.toml").write_text(text, encoding="utf-8")
        return self._register(name, "0.1.0", directory, tuple(all_deps), member=True)

    def third_party(self, name: str, version: str, source: str = CRATES_IO) -> PackageMetadata:
        """Register a resolved (non-member) package."""
        package = PackageMetadata(
            id=f"{name} {version} ({source})",
            name=name,
            version=version,
            source=source,
            manifest_path=Path("/registry") / f"{name}-{version}" / "Cargo.toml",
        )
        self._packages[package.id] = package
        return package

    def _register(
        self,
        name: str,
        version: str,
        directory: Path,
        deps: tuple[DependencyDecl, ...],
        *,
        member: bool,
    ) -> PackageMetadata:
        package = PackageMetadata(
            id=f"{name} {version} (path+file://{directory})",
            name=name,
            version=version,
            source=None,
            manifest_path=directory / "Cargo.toml",
            dependencies=deps,
        )
        self._packages[package.id] = package
        if member:
            self._members.append(package.id)
            self._member_paths.append(directory.relative_to(self.root).as_posix())
            self._write_root()
        return package

    def _write_root(self) -> None:
        entries = "".join(f'    "{path}",\n' for path in self._member_paths)
        (self.root / "Cargo.toml").write_text(
            f'[workspace]\nresolver = "2"\nmembers = [\n{entries}]\n',
            encoding="utf-8",
        )

    # -- config and graph --------------------------------------------------

    def config(self, text: str | None = None, path: Path | None = None) -> Path:
        """Write a config document (default: naming the workspace-hack)."""
        target = self.root / (path if path is not None else Path(DEFAULT_CONFIG_PATH))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(
            text if text is not None else f'hakari-package = "{HACK_NAME}"\n',
            encoding="utf-8",
        )
        return target

    def graph(self) -> WorkspaceGraph:
        return WorkspaceGraph(
            workspace_root=self.root,
            packages=dict(self._packages),
            members=tuple(self._members),
        )

    def reload(self) -> WorkspaceGraph:
        """Return the graph ``cargo metadata`` would report for the files on disk.

        Path dependencies are re-read from every member manifest, so edits
        made by a :class:`FileManifestStore` show up as edges.  Registered
        third-party declarations are kept as they are.
        """
        packages = dict(self._packages)
        for package_id in self._members:
            package = packages[package_id]
            data = tomllib.loads(package.manifest_path.read_text(encoding="utf-8"))
            kept = tuple(decl for decl in package.dependencies if decl.source is not None)
            packages[package_id] = dataclasses.replace(
                package, dependencies=kept + tuple(_path_dependencies(data))
            )
        return WorkspaceGraph(
            workspace_root=self.root,
            packages=packages,
            members=tuple(self._members),
        )

    def read(self, relative: str) -> str:
        return (self.root / relative).read_text(encoding="utf-8")

    def snapshot(self) -> dict[str, str]:
        """Map every file under the root to its contents."""
        return {
            path.relative_to(self.root).as_posix(): path.read_text(encoding="utf-8")
            for path in sorted(self.root.rglob("*"))
            if path.is_file()
        }


def _path_dependencies(data: dict[str, Any]) -> Iterator[DependencyDecl]:
    scopes: list[tuple[str | None, dict[str, Any]]] = [(None, data)]
    scopes += list(data.get("target", {}).items())
    for target, scope in scopes:
        for table, kind in _DEPENDENCY_TABLES.items():
            for key, spec in scope.get(table, {}).items():
                if not isinstance(spec, dict) or "path" not in spec:
                    continue
                name = spec.get("package", key)
                yield DependencyDecl(
                    name=name,
                    source=None,
                    kind=kind,
                    target=target,
                    rename=key if name != key else None,
                )


@pytest.fixture(autouse=True)
def _restore_wshack_logger() -> Iterator[None]:
    """Undo the handler, level and colour changes made by ``configure_output``."""
    logger = logging.getLogger("wshack")
    level, handlers = logger.level, list(logger.handlers)
    settings = dict(console_module._settings)
    yield
    logger.setLevel(level)
    logger.handlers[:] = handlers
    console_module._settings.update(settings)


@pytest.fixture()
def workspace(tmp_path: Path) -> WorkspaceFactory:
    """An empty workspace rooted at a fresh temporary directory."""
    root = tmp_path / "ws"
    root.mkdir()
    return WorkspaceFactory(root)


@pytest.fixture()
def serde_workspace(workspace: WorkspaceFactory) -> WorkspaceFactory:
    """Members ``a`` and ``b`` build serde with different feature sets.

    ``a`` already depends on the workspace-hack; ``b`` and ``c`` do not.
    """
    workspace.hack()
    workspace.member("a", dep("serde", "derive"), hack_edge=True)
    workspace.member("b", dep("serde"))
    workspace.member("c")
    workspace.third_party("serde", "1.0.190")
    workspace.config()
    return workspace
