"""Graph-aware planner for the workspace-hack package.

:class:`HackBuilder` answers every question a command asks about the
target state: what the generated region should contain, which
dependency edges must be added or removed, whether the current region
actually unifies feature sets, and why a dependency is present.

Unification model
-----------------
For every third-party dependency declared by a workspace member (other
than the workspace-hack itself), each declaration contributes one
*feature set*: its explicit features plus ``default`` when default
features are enabled.  A dependency built with two or more distinct
feature sets is emitted with the union of all of them, so that every
member resolves it identically once it depends on the workspace-hack.

Guarantees
----------
* Pure computation over an immutable :class:`WorkspaceGraph`.
* Only :class:`~wshack.exceptions.WshackError` subclasses escape.
"""

from __future__ import annotations

import logging
import os
import tomllib
from collections import defaultdict
from collections.abc import Iterable, Mapping
from pathlib import Path, PurePosixPath
from typing import Any
from urllib.parse import parse_qs, urlsplit

from wshack.core.config import HackConfig
from wshack.core.models import (
    DEFAULT_FEATURE,
    DependencyDecl,
    Explanation,
    HackDependency,
    HackManifest,
    Operation,
    OperationKind,
    OutputOptions,
    PackageMetadata,
    PackageSet,
    Plan,
    ValidationIssue,
    WorkspaceGraph,
)
from wshack.exceptions import (
    DependencyNotFound,
    GenerationError,
    ManifestError,
    PlanBuilderError,
    UnrecognizedRegistry,
    WshackError,
)
from wshack.utils.toml_text import format_key, format_value

logger = logging.getLogger(__name__)

CRATES_IO_SOURCES = frozenset(
    {
        "registry+https://github.com/rust-lang/crates.io-index",
        "sparse+https://index.crates.io/",
    }
)

FeatureSets = tuple[tuple[tuple[str, ...], tuple[str, ...]], ...]


def _sorted_feature_sets(by_set: Mapping[frozenset[str], Iterable[str]]) -> FeatureSets:
    return tuple(
        sorted((tuple(sorted(features)), tuple(sorted(set(names)))) for features, names in by_set.items())
    )


def _version_key(version: str) -> tuple[tuple[int, ...], int]:
    """Sort key for semver strings; pre-releases sort below releases."""
    core, _, pre = version.partition("+")[0].partition("-")
    numbers: list[int] = []
    for part in core.split("."):
        numbers.append(int(part) if part.isdigit() else 0)
    return tuple(numbers), 0 if pre else 1


def _strip_index_scheme(url: str) -> str:
    for prefix in ("registry+", "sparse+"):
        if url.startswith(prefix):
            url = url[len(prefix):]
    return url.rstrip("/")


# ---------------------------------------------------------------------------
# Computed output
# ---------------------------------------------------------------------------

class HackOutput:
    """The computed contents of the workspace-hack, before rendering."""

    def __init__(
        self,
        dependencies: Iterable[HackDependency],
        registries: Mapping[str, str],
    ) -> None:
        self._dependencies: tuple[HackDependency, ...] = tuple(
            sorted(dependencies, key=lambda dep: dep.name)
        )
        self._registries: dict[str, str] = dict(registries)

    @property
    def dependencies(self) -> tuple[HackDependency, ...]:
        return self._dependencies

    def get(self, name: str) -> HackDependency | None:
        """Look a dependency up by the name it has in the output."""
        return next((dep for dep in self._dependencies if dep.name == name), None)

    def to_toml(self, options: OutputOptions) -> str:
        """Render the generated region contents.

        Raises
        ------
        UnrecognizedRegistry
            If a dependency comes from a registry without an alias.
        GenerationError
            If a dependency has a source kind that cannot be expressed.
        """
        lines = [
            f"{format_key(dep.name)} = {format_value(self._spec(dep, options))}"
            for dep in self._dependencies
        ]
        if not lines:
            return ""
        body = "\n".join(lines)
        return f"[dependencies]\n{body}\n\n[build-dependencies]\n{body}\n"

    def _spec(self, dep: HackDependency, options: OutputOptions) -> dict[str, Any]:
        prefix = "=" if options.exact_versions else ""
        spec: dict[str, Any] = {"version": f"{prefix}{dep.version}"}
        spec.update(self._source_fields(dep))
        if not dep.default_features:
            spec["default-features"] = False
        if dep.features:
            spec["features"] = list(dep.features)
        return spec

    def _source_fields(self, dep: HackDependency) -> dict[str, str]:
        source = dep.source or ""
        if source in CRATES_IO_SOURCES:
            return {}

        if source.startswith(("registry+", "sparse+")):
            url = _strip_index_scheme(source)
            for alias, index in sorted(self._registries.items()):
                if _strip_index_scheme(index) == url:
                    return {"registry": alias}
            raise UnrecognizedRegistry(dep.name, dep.version, url)

        if source.startswith("git+"):
            parts = urlsplit(source[len("git+"):])
            fields = {"git": parts._replace(query="", fragment="").geturl()}
            query = parse_qs(parts.query)
            for key in ("branch", "tag", "rev"):
                if key in query:
                    fields[key] = query[key][0]
            return fields

        raise GenerationError(f"unsupported source '{source}' for {dep.name} v{dep.version}")


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------

class HackBuilder:
    """Planner bound to one graph snapshot and one configuration.

    Parameters
    ----------
    graph:
        The workspace graph built for this invocation.
    config:
        Parsed configuration naming the workspace-hack package.

    Raises
    ------
    PlanBuilderError
        If the config does not name a workspace member as the
        workspace-hack package.
    """

    def __init__(self, graph: WorkspaceGraph, config: HackConfig) -> None:
        if not config.hack_package:
            raise PlanBuilderError(
                f"error resolving config at {config.path}: 'hakari-package' is not set",
                hint="Set hakari-package to the name of the workspace-hack package.",
            )
        hack = graph.member_by_name(config.hack_package)
        if hack is None:
            raise PlanBuilderError(
                f"error resolving config at {config.path}: hakari-package "
                f"'{config.hack_package}' is not a workspace member",
                hint="Add the workspace-hack package to [workspace] members in the root Cargo.toml.",
            )
        self._graph: WorkspaceGraph = graph
        self._config: HackConfig = config
        self._hack: PackageMetadata = hack

    @property
    def graph(self) -> WorkspaceGraph:
        return self._graph

    @property
    def hack_package(self) -> PackageMetadata:
        return self._hack

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def compute(self) -> HackOutput:
        """Compute which third-party dependencies the workspace-hack unifies."""
        dependencies: list[HackDependency] = []
        for (name, source), by_set in sorted(
            self._declared_feature_sets().items(),
            key=lambda item: (item[0][0], item[0][1] or ""),
        ):
            if len(by_set) < 2 and not self._config.output_single_feature:
                continue
            union: set[str] = set().union(*by_set)
            dependencies.append(
                HackDependency(
                    name=name,
                    version=self._resolved_version(name, source),
                    source=source,
                    features=tuple(sorted(union - {DEFAULT_FEATURE})),
                    default_features=DEFAULT_FEATURE in union,
                    feature_sets=_sorted_feature_sets(by_set),
                )
            )

        seen: set[str] = set()
        for dep in dependencies:
            if dep.name in seen:
                raise GenerationError(
                    f"dependency '{dep.name}' is pulled in from more than one source",
                    hint=f"Add '{dep.name}' to omitted-deps in the wshack config.",
                )
            seen.add(dep.name)

        logger.debug("computed %d unified dependencies", len(dependencies))
        return HackOutput(dependencies, self._config.registries)

    def generate(self, options: OutputOptions) -> str:
        """Compute and render new region contents.

        Raises
        ------
        UnrecognizedRegistry
            Advisory: a registry alias is missing from the config.
        GenerationError
            For every other failure.
        """
        try:
            return self.compute().to_toml(options)
        except WshackError:
            raise
        except Exception as exc:
            raise GenerationError(f"error generating new contents: {exc}") from exc

    # ------------------------------------------------------------------
    # Dependency edges
    # ------------------------------------------------------------------

    def manage_dep_ops(self, selected: PackageSet) -> Plan:
        """Plan edges so that exactly the selected members depend on the hack.

        Additions for selected members come first, then removals for
        members outside an explicit selection.  The default selection
        covers the whole workspace and therefore never removes.
        """
        adds: list[Operation] = []
        removes: list[Operation] = []
        for package in self._members_by_name():
            has_edge = self._graph.has_edge(package.id, self._hack.id)
            if package.id in selected and not has_edge:
                adds.append(self._edge_op(OperationKind.ADD_EDGE, package))
            elif package.id not in selected and has_edge and selected.explicit:
                removes.append(self._edge_op(OperationKind.REMOVE_EDGE, package))
        return Plan(tuple(adds + removes))

    def remove_dep_ops(self, selected: PackageSet) -> Plan:
        """Plan edge removals for every selected member that has the edge."""
        return Plan(
            tuple(
                self._edge_op(OperationKind.REMOVE_EDGE, package)
                for package in self._members_by_name()
                if package.id in selected and self._graph.has_edge(package.id, self._hack.id)
            )
        )

    def edge_spec(self, package: PackageMetadata) -> tuple[tuple[str, str], ...]:
        """Inline-table fields for the dependency line pointing at the hack."""
        hack_dir = self._hack.manifest_path.parent
        relative = os.path.relpath(hack_dir, package.manifest_path.parent)
        return (
            ("version", self._hack.version),
            ("path", Path(relative).as_posix()),
        )

    # ------------------------------------------------------------------
    # Verification and explanation
    # ------------------------------------------------------------------

    def verify(self, manifest: HackManifest) -> list[ValidationIssue]:
        """Check that the current region unifies every third-party dependency.

        Each member's *effective* feature set for a dependency is its own
        declarations, unioned with the workspace-hack's entry when the
        member depends on the workspace-hack.  More than one distinct
        effective set means the workspace still builds the dependency
        more than once.
        """
        hack_entries = self._parse_region_entries(manifest)
        issues: list[ValidationIssue] = []

        for (name, _source), per_package in sorted(
            self._per_package_feature_sets().items(),
            key=lambda item: (item[0][0], item[0][1] or ""),
        ):
            by_effective: dict[frozenset[str], set[str]] = defaultdict(set)
            for package_name, (package_id, features) in per_package.items():
                effective = set(features)
                if name in hack_entries and self._graph.has_edge(package_id, self._hack.id):
                    effective |= hack_entries[name]
                by_effective[frozenset(effective)].add(package_name)
            if len(by_effective) > 1:
                issues.append(ValidationIssue(name, _sorted_feature_sets(by_effective)))

        return issues

    def explain(self, name: str) -> Explanation:
        """Explain which members produced each feature set of *name*.

        Raises
        ------
        DependencyNotFound
            If *name* is not part of the computed workspace-hack.
        """
        dep = self.compute().get(name)
        if dep is None:
            raise DependencyNotFound(name)
        return Explanation(dependency=dep.name, version=dep.version, feature_sets=dep.feature_sets)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _members_by_name(self) -> list[PackageMetadata]:
        members = [
            self._graph.package(member_id)
            for member_id in self._graph.members
            if member_id != self._hack.id
        ]
        return sorted(members, key=lambda package: package.name)

    def _third_party_decls(self) -> Iterable[tuple[PackageMetadata, DependencyDecl]]:
        omitted = set(self._config.omitted_deps)
        for package in self._members_by_name():
            for dep in package.dependencies:
                if dep.source is None or dep.name in omitted:
                    continue
                yield package, dep

    def _declared_feature_sets(self) -> dict[tuple[str, str | None], dict[frozenset[str], set[str]]]:
        result: dict[tuple[str, str | None], dict[frozenset[str], set[str]]] = defaultdict(
            lambda: defaultdict(set)
        )
        for package, dep in self._third_party_decls():
            result[(dep.name, dep.source)][dep.feature_set()].add(package.name)
        return result

    def _per_package_feature_sets(
        self,
    ) -> dict[tuple[str, str | None], dict[str, tuple[str, set[str]]]]:
        result: dict[tuple[str, str | None], dict[str, tuple[str, set[str]]]] = defaultdict(dict)
        for package, dep in self._third_party_decls():
            entry = result[(dep.name, dep.source)].setdefault(package.name, (package.id, set()))
            entry[1].update(dep.feature_set())
        return result

    def _resolved_version(self, name: str, source: str | None) -> str:
        versions = self._graph.resolved_versions(name, source)
        if not versions:
            raise GenerationError(
                f"no resolved version of {name} from {source} in workspace metadata",
                hint="Run `cargo generate-lockfile` and try again.",
            )
        return max(versions, key=_version_key)

    def _parse_region_entries(self, manifest: HackManifest) -> dict[str, set[str]]:
        try:
            data = tomllib.loads(manifest.region)
        except tomllib.TOMLDecodeError as exc:
            raise ManifestError(
                f"generated section of {manifest.path} is not valid TOML: {exc}",
                hint="Regenerate it with `wshack generate`.",
            ) from exc

        entries: dict[str, set[str]] = {}
        table = data.get("dependencies", {})
        for name, spec in table.items() if isinstance(table, dict) else ():
            if isinstance(spec, dict):
                features = {str(feature) for feature in spec.get("features", [])}
                if spec.get("default-features", True):
                    features.add(DEFAULT_FEATURE)
            else:
                features = {DEFAULT_FEATURE}
            entries[name] = features
        return entries

    def _workspace_relative(self, package: PackageMetadata) -> PurePosixPath:
        try:
            relative = package.manifest_path.relative_to(self._graph.workspace_root)
        except ValueError:
            return PurePosixPath(package.manifest_path.as_posix())
        return PurePosixPath(relative.as_posix())

    def _edge_op(self, kind: OperationKind, package: PackageMetadata) -> Operation:
        return Operation(
            kind=kind,
            path=self._workspace_relative(package),
            package=package.name,
            dependency=self._hack.name,
            dependency_spec=self.edge_spec(package) if kind is OperationKind.ADD_EDGE else (),
        )
