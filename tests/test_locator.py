"""Tests for workspace-relative path resolution (core/locator.py)."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

import pytest

from wshack.core.locator import resolve
from wshack.exceptions import PathOutsideWorkspace

ROOT = Path("/ws")


class TestResolve:
    def test_relative_path_is_joined_with_cwd(self) -> None:
        assert resolve("hack", ROOT, cwd=ROOT / "crates") == PurePosixPath("crates/hack")

    def test_absolute_path_ignores_cwd(self) -> None:
        assert resolve(Path("/ws/tools/hack"), ROOT, cwd=Path("/elsewhere")) == PurePosixPath(
            "tools/hack"
        )

    def test_parent_components_are_normalised(self) -> None:
        assert resolve("../hack", ROOT, cwd=ROOT / "crates") == PurePosixPath("hack")

    def test_workspace_root_itself_is_accepted(self) -> None:
        assert resolve(".", ROOT, cwd=ROOT) == PurePosixPath(".")

    def test_path_outside_workspace_is_rejected(self) -> None:
        with pytest.raises(PathOutsideWorkspace) as exc_info:
            resolve("../../outside", ROOT, cwd=ROOT / "crates")
        assert exc_info.value.workspace_root == ROOT

    def test_sibling_with_common_prefix_is_rejected(self) -> None:
        with pytest.raises(PathOutsideWorkspace):
            resolve(Path("/ws-other/hack"), ROOT)

    def test_defaults_to_process_cwd(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        assert resolve("hack", tmp_path.resolve()) == PurePosixPath("hack")
