"""Exit-code constants and the outcome → exit-code encoder.

Centralised here so that every exit path uses a well-known, tested
value rather than magic integers scattered across the codebase.
"""

from __future__ import annotations

from wshack.core.models import OutcomeKind, RunOutcome

SUCCESS: int = 0
"""Converged: nothing to do, or changes were applied."""

CHANGES_PENDING: int = 1
"""Not converged: dry-run, declined prompt, diff with differences, or
failed verification.  Automation should treat this as "needs action"."""

UNEXPECTED_ERROR: int = 2
"""An unhandled exception escaped all known error boundaries."""

GENERAL_ERROR: int = 101
"""A known WshackError was caught. User-facing message was displayed."""

UNRECOGNIZED_REGISTRY: int = 102
"""Advisory: a registry alias is missing from the config (one-line fix)."""

KEYBOARD_INTERRUPT: int = 130
"""User pressed Ctrl+C.  Follows POSIX convention (128 + SIGINT=2)."""


_BY_KIND: dict[OutcomeKind, int] = {
    OutcomeKind.NO_OP: SUCCESS,
    OutcomeKind.APPLIED: SUCCESS,
    OutcomeKind.PENDING_DRY_RUN: CHANGES_PENDING,
    OutcomeKind.DECLINED: CHANGES_PENDING,
    OutcomeKind.DIFFERENCES_PRESENT: CHANGES_PENDING,
    OutcomeKind.VALIDATION_FAILED: CHANGES_PENDING,
    OutcomeKind.UNRECOGNIZED_REGISTRY: UNRECOGNIZED_REGISTRY,
}


def for_outcome(outcome: RunOutcome) -> int:
    """Map a :class:`RunOutcome` to the process exit status."""
    if outcome.kind is OutcomeKind.DELEGATED:
        return outcome.status if outcome.status is not None else GENERAL_ERROR
    return _BY_KIND[outcome.kind]
