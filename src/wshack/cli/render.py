"""Rich rendering for ``explain`` and ``verify`` results.

All display-related logic lives here: no planning, no filesystem
access.  Tables go through the shared stderr console.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from wshack.cli.console import color_enabled, console, escape_markup
from wshack.core.models import Explanation, ValidationIssue
from wshack.exceptions import ToolNotFoundError


def _import_rich_table() -> type[Any]:
    """Import rich table lazily."""
    try:
        from rich.table import Table
    except ModuleNotFoundError as exc:
        raise ToolNotFoundError(
            "rich is not installed. Install with: pip install rich",
        ) from exc
    return Table


# ---------------------------------------------------------------------------
# Presentation helpers (pure transforms, no I/O)
# ---------------------------------------------------------------------------

def format_features(features: Sequence[str]) -> str:
    """Render a feature set, with a marker for the empty set."""
    if not features:
        return "(no features)"
    return ", ".join(features)


def format_packages(packages: Sequence[str]) -> str:
    return ", ".join(packages)


def feature_table(title: str, feature_sets: Sequence[tuple[Sequence[str], Sequence[str]]]) -> Any:
    """Build the feature-set table; styling is dropped when colour is off."""
    table_class = _import_rich_table()
    styled = color_enabled()
    table = table_class(
        title=escape_markup(title),
        show_header=True,
        header_style="bold magenta" if styled else "",
        border_style="dim" if styled else "",
    )
    table.add_column("#", justify="right", style="dim" if styled else "", width=4)
    table.add_column("Features", justify="left", min_width=16)
    table.add_column("Workspace packages", justify="left", min_width=20)
    for index, (features, packages) in enumerate(feature_sets, start=1):
        table.add_row(
            str(index),
            escape_markup(format_features(features)),
            escape_markup(format_packages(packages)),
        )
    return table


# ---------------------------------------------------------------------------
# Public renderers
# ---------------------------------------------------------------------------

def render_explanation(explanation: Explanation) -> None:
    """Print the feature sets that put a dependency into the workspace-hack."""
    console.print()
    console.print(
        feature_table(
            f"{explanation.dependency} v{explanation.version}",
            explanation.feature_sets,
        )
    )
    console.print()


def render_validation_issues(hack_name: str, issues: Sequence[ValidationIssue]) -> None:
    """Print every dependency that is still built with diverging feature sets."""
    header = f"{escape_markup(hack_name)} didn't work correctly:"
    console.print(f"[bold red]{header}[/bold red]" if color_enabled() else header)
    for issue in issues:
        console.print()
        console.print(feature_table(issue.dependency, issue.feature_sets))
    console.print()
