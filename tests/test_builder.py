"""Tests for the graph-aware planner (core/builder.py).

Graphs come from the :class:`WorkspaceFactory` fixture; no cargo.
These tests verify:

* Feature-set unification and the rendered region contents
* Source handling (crates.io, aliased registries, git) and its errors
* Edge planning for ``manage-deps`` / ``remove-deps``
* ``verify`` and ``explain``
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any

import pytest

from wshack.core.builder import HackBuilder
from wshack.core.config import HackConfig
from wshack.core.differ import parse_manifest, replace_region
from wshack.core.models import OperationKind, OutputOptions, PackageSet, WorkspaceGraph
from wshack.core.selector import select
from wshack.exceptions import (
    DependencyNotFound,
    GenerationError,
    ManifestError,
    UnrecognizedRegistry,
)
from wshack.infra.manifest_store import FileManifestStore

if TYPE_CHECKING:
    from conftest import WorkspaceFactory

SERDE_LINE = 'serde = { version = "1.0.190", features = ["derive"] }'
SERDE_REGION = f"[dependencies]\n{SERDE_LINE}\n\n[build-dependencies]\n{SERDE_LINE}\n"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _builder(
    ws: WorkspaceFactory, graph: WorkspaceGraph | None = None, **overrides: Any
) -> HackBuilder:
    """Build a planner over *ws* (or *graph*) with config fields overridden."""
    defaults: dict[str, Any] = {
        "path": ws.root / ".config/wshack.toml",
        "hack_package": "workspace-hack",
    }
    defaults.update(overrides)
    return HackBuilder(graph if graph is not None else ws.graph(), HackConfig(**defaults))


def _plan_summary(plan: Any) -> list[tuple[OperationKind, str | None]]:
    return [(op.kind, op.package) for op in plan]


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------

class TestCompute:
    def test_unifies_diverging_feature_sets(self, serde_workspace: WorkspaceFactory) -> None:
        (serde,) = _builder(serde_workspace).compute().dependencies
        assert serde.name == "serde"
        assert serde.version == "1.0.190"
        assert serde.features == ("derive",)
        assert serde.default_features is True
        assert serde.feature_sets == (
            (("default",), ("b",)),
            (("default", "derive"), ("a",)),
        )

    def test_single_feature_set_is_skipped(self, workspace: WorkspaceFactory) -> None:
        workspace.hack()
        workspace.member("a", workspace.dep("log"))
        workspace.member("b", workspace.dep("log"))
        workspace.third_party("log", "0.4.20")
        assert _builder(workspace).compute().dependencies == ()

    def test_output_single_feature(self, workspace: WorkspaceFactory) -> None:
        workspace.hack()
        workspace.member("a", workspace.dep("log"))
        workspace.third_party("log", "0.4.20")
        (log,) = _builder(workspace, output_single_feature=True).compute().dependencies
        assert log.name == "log"

    def test_omitted_deps(self, serde_workspace: WorkspaceFactory) -> None:
        output = _builder(serde_workspace, omitted_deps=("serde",)).compute()
        assert output.dependencies == ()

    def test_highest_resolved_version_wins(self, serde_workspace: WorkspaceFactory) -> None:
        serde_workspace.third_party("serde", "1.0.99")
        serde_workspace.third_party("serde", "1.0.190-rc.1")
        (serde,) = _builder(serde_workspace).compute().dependencies
        assert serde.version == "1.0.190"

    def test_default_features_off_everywhere(self, workspace: WorkspaceFactory) -> None:
        workspace.hack()
        workspace.member("a", workspace.dep("tokio", "rt", default=False))
        workspace.member("b", workspace.dep("tokio", "macros", default=False))
        workspace.third_party("tokio", "1.35.0")
        (tokio,) = _builder(workspace).compute().dependencies
        assert tokio.default_features is False
        assert tokio.features == ("macros", "rt")

    def test_path_dependencies_are_ignored(self, workspace: WorkspaceFactory) -> None:
        workspace.hack()
        workspace.member("a", workspace.dep("b", source=None))
        workspace.member("b")
        assert _builder(workspace, output_single_feature=True).compute().dependencies == ()

    def test_same_name_from_two_sources(self, serde_workspace: WorkspaceFactory) -> None:
        git = "git+https://github.com/serde-rs/serde?branch=main#abc"
        serde_workspace.member("d", serde_workspace.dep("serde", "rc", source=git))
        serde_workspace.member("e", serde_workspace.dep("serde", source=git))
        serde_workspace.third_party("serde", "1.0.190", source=git)
        with pytest.raises(GenerationError, match="more than one source"):
            _builder(serde_workspace).compute()

    def test_missing_resolved_version(self, workspace: WorkspaceFactory) -> None:
        workspace.hack()
        workspace.member("a", workspace.dep("log"))
        with pytest.raises(GenerationError, match="no resolved version"):
            _builder(workspace, output_single_feature=True).compute()


class TestGenerate:
    def test_renders_both_tables(self, serde_workspace: WorkspaceFactory) -> None:
        assert _builder(serde_workspace).generate(OutputOptions()) == SERDE_REGION

    def test_exact_versions(self, serde_workspace: WorkspaceFactory) -> None:
        text = _builder(serde_workspace).generate(OutputOptions(exact_versions=True))
        assert 'version = "=1.0.190"' in text

    def test_nothing_to_unify_renders_empty(self, workspace: WorkspaceFactory) -> None:
        workspace.hack()
        workspace.member("a")
        assert _builder(workspace).generate(OutputOptions()) == ""

    def test_default_features_false_is_rendered(self, workspace: WorkspaceFactory) -> None:
        workspace.hack()
        workspace.member("a", workspace.dep("tokio", "rt", default=False))
        workspace.member("b", workspace.dep("tokio", default=False))
        workspace.third_party("tokio", "1.35.0")
        text = _builder(workspace).generate(OutputOptions())
        assert 'tokio = { version = "1.35.0", default-features = false, features = ["rt"] }' in text

    def test_aliased_registry(self, workspace: WorkspaceFactory) -> None:
        source = "sparse+https://example.com/index/"
        workspace.hack()
        workspace.member("a", workspace.dep("internal", "x", source=source))
        workspace.member("b", workspace.dep("internal", source=source))
        workspace.third_party("internal", "2.0.0", source=source)
        text = _builder(
            workspace, registries={"corp": "sparse+https://example.com/index"}
        ).generate(OutputOptions())
        assert 'internal = { version = "2.0.0", registry = "corp", features = ["x"] }' in text

    def test_unrecognized_registry(self, workspace: WorkspaceFactory) -> None:
        source = "registry+https://example.com/index"
        workspace.hack()
        workspace.member("a", workspace.dep("internal", "x", source=source))
        workspace.member("b", workspace.dep("internal", source=source))
        workspace.third_party("internal", "2.0.0", source=source)
        with pytest.raises(UnrecognizedRegistry) as exc_info:
            _builder(workspace).generate(OutputOptions())
        assert exc_info.value.package == "internal"
        assert exc_info.value.registry_url == "https://example.com/index"

    def test_git_source(self, workspace: WorkspaceFactory) -> None:
        source = "git+https://github.com/org/lib?branch=main#0123abcd"
        workspace.hack()
        workspace.member("a", workspace.dep("lib", "x", source=source))
        workspace.member("b", workspace.dep("lib", source=source))
        workspace.third_party("lib", "0.3.0", source=source)
        text = _builder(workspace).generate(OutputOptions())
        assert (
            'lib = { version = "0.3.0", git = "https://github.com/org/lib", '
            'branch = "main", features = ["x"] }'
        ) in text

    def test_deterministic(self, serde_workspace: WorkspaceFactory) -> None:
        builder = _builder(serde_workspace)
        assert builder.generate(OutputOptions()) == builder.generate(OutputOptions())


# ---------------------------------------------------------------------------
# Edge planning
# ---------------------------------------------------------------------------

class TestManageDeps:
    def test_default_selection_adds_missing_edges(
        self, serde_workspace: WorkspaceFactory
    ) -> None:
        builder = _builder(serde_workspace)
        plan = builder.manage_dep_ops(select([], builder.graph))
        assert _plan_summary(plan) == [
            (OperationKind.ADD_EDGE, "b"),
            (OperationKind.ADD_EDGE, "c"),
        ]
        first = plan.operations[0]
        assert first.path == PurePosixPath("crates/b/Cargo.toml")
        assert first.dependency == "workspace-hack"
        assert first.dependency_spec == (
            ("version", "0.1.0"),
            ("path", "../../workspace-hack"),
        )

    def test_explicit_selection_adds_then_removes(self, workspace: WorkspaceFactory) -> None:
        workspace.hack()
        workspace.member("a")
        workspace.member("b")
        workspace.member("c", hack_edge=True)
        builder = _builder(workspace)
        plan = builder.manage_dep_ops(select(["a", "b"], builder.graph))
        assert _plan_summary(plan) == [
            (OperationKind.ADD_EDGE, "a"),
            (OperationKind.ADD_EDGE, "b"),
            (OperationKind.REMOVE_EDGE, "c"),
        ]
        assert plan.operations[2].dependency_spec == ()

    def test_implicit_selection_never_removes(self, serde_workspace: WorkspaceFactory) -> None:
        builder = _builder(serde_workspace)
        hack_and_b = frozenset(
            {builder.hack_package.id, builder.graph.member_by_name("b").id}  # type: ignore[union-attr]
        )
        plan = builder.manage_dep_ops(PackageSet(hack_and_b, explicit=False))
        assert _plan_summary(plan) == [(OperationKind.ADD_EDGE, "b")]

    def test_converged_workspace_plans_nothing(self, workspace: WorkspaceFactory) -> None:
        workspace.hack()
        workspace.member("a", hack_edge=True)
        builder = _builder(workspace)
        assert not builder.manage_dep_ops(select([], builder.graph))

    def test_hack_never_depends_on_itself(self, serde_workspace: WorkspaceFactory) -> None:
        builder = _builder(serde_workspace)
        plan = builder.manage_dep_ops(select(["workspace-hack"], builder.graph))
        assert all(op.package != "workspace-hack" for op in plan)


class TestEdgePlanIdempotence:
    """Applying an edge plan and replanning from the edited manifests converges."""

    DEV_EDGE = '\n[dev-dependencies]\nworkspace-hack = { path = "../../workspace-hack" }\n'
    DOTTED_EDGE = 'workspace-hack.version = "0.1.0"\nworkspace-hack.path = "../../workspace-hack"\n'

    @pytest.fixture()
    def ws(self, workspace: WorkspaceFactory) -> WorkspaceFactory:
        workspace.hack()
        workspace.member("a", hack_edge=True)
        workspace.member("b")
        workspace.member("c", extra=self.DEV_EDGE)
        workspace.member("d", extra=self.DOTTED_EDGE)
        return workspace

    def _apply(self, ws: WorkspaceFactory, plan: Any) -> HackBuilder:
        store = FileManifestStore(ws.root)
        for op in plan:
            store.apply(op)
        return _builder(ws, graph=ws.reload())

    def test_default_manage_deps(self, ws: WorkspaceFactory) -> None:
        builder = _builder(ws, graph=ws.reload())
        plan = builder.manage_dep_ops(select([], builder.graph))
        assert _plan_summary(plan) == [
            (OperationKind.ADD_EDGE, "b"),
            (OperationKind.ADD_EDGE, "c"),
        ]
        rebuilt = self._apply(ws, plan)
        assert not rebuilt.manage_dep_ops(select([], rebuilt.graph))
        assert "[dev-dependencies]" in ws.read("crates/c/Cargo.toml")

    def test_explicit_manage_deps(self, ws: WorkspaceFactory) -> None:
        builder = _builder(ws, graph=ws.reload())
        plan = builder.manage_dep_ops(select(["b"], builder.graph))
        assert _plan_summary(plan) == [
            (OperationKind.ADD_EDGE, "b"),
            (OperationKind.REMOVE_EDGE, "a"),
            (OperationKind.REMOVE_EDGE, "d"),
        ]
        rebuilt = self._apply(ws, plan)
        assert not rebuilt.manage_dep_ops(select(["b"], rebuilt.graph))
        assert "workspace-hack" not in ws.read("crates/d/Cargo.toml")
        assert ws.read("crates/c/Cargo.toml").endswith(self.DEV_EDGE)

    def test_remove_deps(self, ws: WorkspaceFactory) -> None:
        builder = _builder(ws, graph=ws.reload())
        plan = builder.remove_dep_ops(select([], builder.graph))
        assert _plan_summary(plan) == [
            (OperationKind.REMOVE_EDGE, "a"),
            (OperationKind.REMOVE_EDGE, "d"),
        ]
        rebuilt = self._apply(ws, plan)
        assert not rebuilt.remove_dep_ops(select([], rebuilt.graph))


class TestRemoveDeps:
    def test_removes_only_existing_edges(self, serde_workspace: WorkspaceFactory) -> None:
        builder = _builder(serde_workspace)
        plan = builder.remove_dep_ops(select([], builder.graph))
        assert _plan_summary(plan) == [(OperationKind.REMOVE_EDGE, "a")]

    def test_unselected_edges_are_kept(self, serde_workspace: WorkspaceFactory) -> None:
        builder = _builder(serde_workspace)
        assert not builder.remove_dep_ops(select(["b", "c"], builder.graph))


# ---------------------------------------------------------------------------
# Verification and explanation
# ---------------------------------------------------------------------------

class TestVerify:
    def _manifest(self, ws: WorkspaceFactory, region: str) -> Any:
        path = ws.root / "workspace-hack" / "Cargo.toml"
        current = parse_manifest(path.read_text(encoding="utf-8"), path)
        return parse_manifest(replace_region(current, region), path)

    def test_empty_region_reports_diverging_dependency(
        self, serde_workspace: WorkspaceFactory
    ) -> None:
        issues = _builder(serde_workspace).verify(self._manifest(serde_workspace, ""))
        assert [issue.dependency for issue in issues] == ["serde"]

    def test_region_without_edges_is_not_enough(self, serde_workspace: WorkspaceFactory) -> None:
        issues = _builder(serde_workspace).verify(self._manifest(serde_workspace, SERDE_REGION))
        assert len(issues) == 1
        assert issues[0].feature_sets == (
            (("default",), ("b",)),
            (("default", "derive"), ("a",)),
        )

    def test_region_with_edges_unifies(self, workspace: WorkspaceFactory) -> None:
        workspace.hack()
        workspace.member("a", workspace.dep("serde", "derive"), hack_edge=True)
        workspace.member("b", workspace.dep("serde"), hack_edge=True)
        workspace.third_party("serde", "1.0.190")
        assert _builder(workspace).verify(self._manifest(workspace, SERDE_REGION)) == []

    def test_invalid_region(self, serde_workspace: WorkspaceFactory) -> None:
        with pytest.raises(ManifestError, match="not valid TOML"):
            _builder(serde_workspace).verify(self._manifest(serde_workspace, "serde = {\n"))


class TestExplain:
    def test_explains_feature_sets(self, serde_workspace: WorkspaceFactory) -> None:
        explanation = _builder(serde_workspace).explain("serde")
        assert explanation.version == "1.0.190"
        assert explanation.feature_sets[1] == (("default", "derive"), ("a",))

    def test_unknown_dependency(self, serde_workspace: WorkspaceFactory) -> None:
        with pytest.raises(DependencyNotFound):
            _builder(serde_workspace).explain("tokio")


class TestEdgeSpec:
    def test_path_is_relative_to_dependent(self, serde_workspace: WorkspaceFactory) -> None:
        builder = _builder(serde_workspace)
        package = builder.graph.member_by_name("c")
        assert package is not None
        assert dict(builder.edge_spec(package)) == {
            "version": "0.1.0",
            "path": Path("../../workspace-hack").as_posix(),
        }
