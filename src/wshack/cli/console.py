"""CLI console and logging setup, rendered through Rich.

Rich is imported lazily so bootstrap paths (``--help``, ``--version``)
do not pay for it.  Both the console proxy and the log handler write to
stderr; stdout is left to cargo when it is invoked in the foreground.
"""

from __future__ import annotations

import logging
from typing import Any

from wshack.exceptions import ToolNotFoundError

COLOR_CHOICES: tuple[str, ...] = ("auto", "always", "never")

_settings: dict[str, str] = {"color": "auto"}
_handler: logging.Handler | None = None


def _load_rich_console_class() -> type[Any]:
	"""Return ``rich.console.Console`` class or raise ``ToolNotFoundError``."""
	try:
		from rich.console import Console
	except ModuleNotFoundError as exc:
		raise ToolNotFoundError(
			"rich is not installed. Install with: pip install rich",
		) from exc
	return Console


def _load_rich_handler_class() -> type[Any]:
	"""Return ``rich.logging.RichHandler`` class or raise ``ToolNotFoundError``."""
	try:
		from rich.logging import RichHandler
	except ModuleNotFoundError as exc:
		raise ToolNotFoundError(
			"rich is not installed. Install with: pip install rich",
		) from exc
	return RichHandler


def escape_markup(text: object) -> str:
	"""Return *text* with Rich markup brackets escaped, for printing verbatim."""
	try:
		from rich.markup import escape
	except ModuleNotFoundError as exc:
		raise ToolNotFoundError(
			"rich is not installed. Install with: pip install rich",
		) from exc
	return escape(str(text))


def get_rich_console() -> Any:
	"""Create a Rich console targeting stderr with the configured colour mode."""
	console_class = _load_rich_console_class()
	color = _settings["color"]
	return console_class(
		stderr=True,
		no_color=color == "never",
		force_terminal=True if color == "always" else None,
		highlight=False,
	)


def color_enabled() -> bool:
	"""Return whether output is currently colourised."""
	return _settings["color"] != "never"


class _ConsoleProxy:
	"""Minimal ``print``-compatible proxy over a freshly configured console."""

	def print(self, *objects: object) -> None:
		get_rich_console().print(*objects)


console = _ConsoleProxy()


def configure_output(color: str = "auto", verbosity: int = 0) -> None:
	"""Apply ``--color`` and route the ``wshack`` loggers through Rich.

	Parameters
	----------
	color:
		One of :data:`COLOR_CHOICES`.
	verbosity:
		Negative for ``--quiet`` (warnings only), zero for the default
		(info), positive for ``--verbose`` (debug).
	"""
	global _handler

	if color not in COLOR_CHOICES:
		raise ValueError(f"unknown colour mode: {color}")
	_settings["color"] = color

	handler_class = _load_rich_handler_class()

	if verbosity < 0:
		level = logging.WARNING
	elif verbosity == 0:
		level = logging.INFO
	else:
		level = logging.DEBUG

	logger = logging.getLogger("wshack")
	if _handler is not None:
		logger.removeHandler(_handler)
	_handler = handler_class(
		console=get_rich_console(),
		show_time=False,
		show_path=verbosity > 0,
		show_level=verbosity > 0,
		markup=False,
		rich_tracebacks=False,
	)
	_handler.setFormatter(logging.Formatter("%(message)s"))
	logger.addHandler(_handler)
	logger.setLevel(level)
