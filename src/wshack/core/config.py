"""Configuration resolver — locate, parse and turn config into a builder.

The configuration document lives at :data:`DEFAULT_CONFIG_PATH` with one
fallback, :data:`FALLBACK_CONFIG_PATH`, both relative to the workspace
root.  The fallback keeps workspaces configured for ``cargo hakari``
working unchanged.

Recognised keys
---------------
``hakari-package``
    Name of the aggregation package (required by builder commands).
``output-single-feature``
    Also emit dependencies built with only one feature set.
``omitted-deps``
    Third-party dependency names never emitted.
``exact-versions``
    Emit ``=x.y.z`` requirements instead of ``x.y.z``.
``[registries]``
    ``alias = { index = "url" }`` for non-crates.io registries.
"""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any

from wshack.core.models import OutputOptions, WorkspaceGraph
from wshack.exceptions import ConfigNotFound, ConfigParseError
from wshack.utils.toml_text import quote_string

if TYPE_CHECKING:
    from wshack.core.builder import HackBuilder

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = PurePosixPath(".config/wshack.toml")
FALLBACK_CONFIG_PATH = PurePosixPath(".guppy/hakari.toml")

CONFIG_COMMENT = """\
# This file contains settings for `wshack`.
# Run `wshack generate` after editing it.
"""

_KNOWN_KEYS = frozenset(
    {
        "hakari-package",
        "output-single-feature",
        "omitted-deps",
        "exact-versions",
        "registries",
    }
)


@dataclass(frozen=True, slots=True)
class HackConfig:
    """Parsed configuration document."""

    path: Path
    hack_package: str | None = None
    output_single_feature: bool = False
    omitted_deps: tuple[str, ...] = ()
    registries: Mapping[str, str] = field(default_factory=dict)
    """Registry alias → index URL."""

    output: OutputOptions = field(default_factory=OutputOptions)


# ---------------------------------------------------------------------------
# Reading and parsing
# ---------------------------------------------------------------------------

def read_config(workspace_root: Path) -> tuple[Path, str]:
    """Return (path, text) of the first config document that exists.

    Raises
    ------
    ConfigNotFound
        If neither the primary nor the fallback path exists.
    ConfigParseError
        If the file exists but cannot be read.
    """
    candidates = [workspace_root / DEFAULT_CONFIG_PATH, workspace_root / FALLBACK_CONFIG_PATH]
    for path in candidates:
        if not path.is_file():
            continue
        try:
            return path, path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigParseError(path, f"could not read file: {exc}") from exc
    raise ConfigNotFound(candidates)


def parse_config(text: str, path: Path) -> HackConfig:
    """Parse a configuration document.

    Raises
    ------
    ConfigParseError
        On malformed TOML or values of the wrong type.
    """
    try:
        data = tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigParseError(path, str(exc)) from exc

    for key in sorted(set(data) - _KNOWN_KEYS):
        logger.debug("ignoring unknown config key %r in %s", key, path)

    return HackConfig(
        path=path,
        hack_package=_optional_str(data, "hakari-package", path),
        output_single_feature=_bool(data, "output-single-feature", path),
        omitted_deps=_str_list(data, "omitted-deps", path),
        registries=_registries(data, path),
        output=OutputOptions(exact_versions=_bool(data, "exact-versions", path)),
    )


def stub_config(package_name: str) -> str:
    """Return the stub config written by ``wshack init``."""
    return (
        f"{CONFIG_COMMENT}\n"
        f"hakari-package = {quote_string(package_name)}\n"
        "\n"
        "# Also emit dependencies that are only built with one feature set.\n"
        "# output-single-feature = false\n"
        "\n"
        "# Aliases for third-party registries other than crates.io.\n"
        "# [registries]\n"
        '# my-registry = { index = "https://example.com/index" }\n'
    )


def load(graph: WorkspaceGraph) -> tuple[HackBuilder, OutputOptions]:
    """Read the workspace config and build the graph-aware planner.

    Returns
    -------
    tuple[HackBuilder, OutputOptions]
        The builder and the output formatting options.
    """
    from wshack.core.builder import HackBuilder

    path, text = read_config(graph.workspace_root)
    config = parse_config(text, path)
    logger.debug("loaded config from %s", path)
    return HackBuilder(graph, config), config.output


# ---------------------------------------------------------------------------
# Typed field helpers
# ---------------------------------------------------------------------------

def _optional_str(data: dict[str, Any], key: str, path: Path) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigParseError(path, f"'{key}' must be a string")
    return value


def _bool(data: dict[str, Any], key: str, path: Path) -> bool:
    value = data.get(key, False)
    if not isinstance(value, bool):
        raise ConfigParseError(path, f"'{key}' must be a boolean")
    return value


def _str_list(data: dict[str, Any], key: str, path: Path) -> tuple[str, ...]:
    value = data.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigParseError(path, f"'{key}' must be a list of strings")
    return tuple(value)


def _registries(data: dict[str, Any], path: Path) -> dict[str, str]:
    raw = data.get("registries", {})
    if not isinstance(raw, dict):
        raise ConfigParseError(path, "'registries' must be a table")
    registries: dict[str, str] = {}
    for alias, entry in raw.items():
        index = entry.get("index") if isinstance(entry, dict) else None
        if not isinstance(index, str):
            raise ConfigParseError(path, f"registry '{alias}' needs an 'index' string")
        registries[alias] = index
    return registries
