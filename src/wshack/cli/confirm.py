"""Interactive yes/no confirmation for the apply controller.

The controller only sees a ``Callable[[str], bool]``; this module
provides the terminal implementation backed by questionary.
"""

from __future__ import annotations

from typing import Any

from wshack.exceptions import ToolNotFoundError, UserInputError


def _import_questionary() -> Any:
    """Import questionary lazily for interactive confirmation."""
    try:
        import questionary
    except ModuleNotFoundError as exc:
        raise ToolNotFoundError(
            "questionary is not installed. Install with: pip install questionary",
        ) from exc
    return questionary


def ask_confirm(prompt: str) -> bool:
    """Ask *prompt* with a default of "yes" and return the answer.

    Raises
    ------
    KeyboardInterrupt
        If the user presses Ctrl+C at the prompt.
    UserInputError
        If standard input is closed or unreadable.
    """
    questionary = _import_questionary()
    try:
        answer = questionary.confirm(prompt, default=True).unsafe_ask()
    except (EOFError, OSError) as exc:
        raise UserInputError(
            f"error reading input: {exc}",
            hint="Pass --yes or --dry-run when running non-interactively.",
        ) from exc
    return bool(answer)
