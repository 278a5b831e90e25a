"""``cargo metadata`` backed implementation of :class:`~wshack.core.protocols.MetadataProvider`.

All subprocess and JSON errors are caught here and re-raised as
:class:`~wshack.exceptions.GraphError`; nothing raw escapes the
infrastructure boundary.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from wshack.exceptions import GraphError
from wshack.infra.cargo import run_cargo


class CargoMetadataProvider:
    """Concrete :class:`MetadataProvider` backed by ``cargo metadata``.

    This class satisfies the :class:`~wshack.core.protocols.MetadataProvider`
    protocol structurally, no explicit inheritance required.
    """

    @staticmethod
    def _build_args() -> list[str]:
        """Return arguments for a full, machine-readable metadata dump."""
        return ["metadata", "--format-version", "1"]

    def fetch_metadata(self, manifest_dir: Path) -> dict[str, Any]:
        """Run ``cargo metadata`` in *manifest_dir* and decode its output.

        Raises
        ------
        GraphError
            When cargo fails or prints something that is not a JSON object.
        """
        result = run_cargo(self._build_args(), manifest_dir)
        if result.returncode != 0:
            raise GraphError(
                "building package graph failed: cargo metadata exited with "
                f"status {result.returncode}\n{result.stderr.strip()}",
                hint="Run wshack from inside a Cargo workspace.",
            )

        try:
            data: Any = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise GraphError(f"cargo metadata produced invalid JSON: {exc}") from exc

        if not isinstance(data, dict):
            raise GraphError("cargo metadata returned an unexpected data structure.")
        return data
