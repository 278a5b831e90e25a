"""Confirmation & apply controller — the reconciliation state machine.

States
------
::

    Planned ──► NoOp                       (empty plan)
            ├─► PendingDryRun              (--dry-run)
            ├─► Declined                   (confirmation answered "no")
            └─► Applying ──► Applied       (every operation succeeded)
                         └─► ApplyFailed   (first failing operation)

Guarantees
----------
* No mutation happens before the ``Applying`` state, so an interrupt
  during confirmation leaves the workspace untouched.
* Operations are applied strictly in plan order; the first failure stops
  the run and is raised as :class:`ApplyFailed`.  Earlier operations are
  not rolled back.
* A failing post-apply hook (lockfile regeneration) is reported as a
  warning on an otherwise successful outcome.
"""

from __future__ import annotations

import logging

from wshack.core.differ import diff_region, is_changed
from wshack.core.models import HackManifest, OutcomeKind, Plan, RunOutcome
from wshack.core.protocols import AfterApply, Confirm, ManifestStore
from wshack.exceptions import ApplyFailed, LockRegenerationFailed, UserInputError

logger = logging.getLogger(__name__)

PROMPT = "proceed?"


def _run_after(after: AfterApply | None) -> tuple[str, ...]:
    """Run the post-apply hook, downgrading lockfile failures to warnings."""
    if after is None:
        return ()
    try:
        after()
    except LockRegenerationFailed as exc:
        logger.warning("changes were applied, but %s", exc)
        if exc.hint:
            logger.warning("%s", exc.hint)
        return (str(exc),)
    return ()


class ApplyController:
    """Render, confirm and apply a :class:`Plan`.

    Parameters
    ----------
    store:
        Applies individual operations (and writes generated regions).
    confirm:
        Blocking yes/no prompt used when neither dry-run nor auto-confirm
        was requested.
    """

    def __init__(self, store: ManifestStore, confirm: Confirm) -> None:
        self._store: ManifestStore = store
        self._confirm: Confirm = confirm

    def run(
        self,
        plan: Plan,
        *,
        dry_run: bool = False,
        yes: bool = False,
        after: AfterApply | None = None,
    ) -> RunOutcome:
        """Drive *plan* through the state machine and return the outcome.

        Raises
        ------
        UserInputError
            If both *dry_run* and *yes* are set, or input is unreadable.
        ApplyFailed
            If an operation fails; wraps the underlying error.
        """
        if dry_run and yes:
            raise UserInputError("--dry-run and --yes cannot be used together")

        if not plan:
            logger.info("no operations to perform")
            return RunOutcome(OutcomeKind.NO_OP)

        logger.info("operations to perform:\n\n%s\n", plan.describe())

        if dry_run:
            return RunOutcome(OutcomeKind.PENDING_DRY_RUN)

        if not yes and not self._confirm(PROMPT):
            logger.info("not applying changes")
            return RunOutcome(OutcomeKind.DECLINED)

        self._apply(plan)
        warnings = _run_after(after)
        return RunOutcome(OutcomeKind.APPLIED, warnings=warnings)

    def _apply(self, plan: Plan) -> None:
        total = len(plan)
        for index, operation in enumerate(plan):
            logger.debug("applying %s", operation.describe())
            try:
                self._store.apply(operation)
            except Exception as exc:
                raise ApplyFailed(operation, index, total, exc) from exc
        logger.info("applied %d operation%s", total, "" if total == 1 else "s")

    # ------------------------------------------------------------------
    # Generated-region reconciliation
    # ------------------------------------------------------------------

    def reconcile(
        self,
        manifest: HackManifest,
        new_contents: str,
        *,
        diff_only: bool = False,
        after: AfterApply | None = None,
    ) -> RunOutcome:
        """Bring the generated region of *manifest* to *new_contents*.

        In diff mode nothing is written: the diff is logged and the
        outcome says whether differences exist.  Otherwise the region is
        written only when it changed semantically, and *after* runs only
        after a write.
        """
        if diff_only:
            diff = diff_region(manifest, new_contents)
            if not diff:
                logger.info("no differences found in %s", manifest.path)
                return RunOutcome(OutcomeKind.NO_OP)
            logger.info("\n%s", diff.render())
            return RunOutcome(OutcomeKind.DIFFERENCES_PRESENT)

        if not is_changed(manifest, new_contents):
            logger.info("no changes detected")
            return RunOutcome(OutcomeKind.NO_OP)

        self._store.write_region(manifest, new_contents)
        logger.info("contents updated")
        warnings = _run_after(after)
        return RunOutcome(OutcomeKind.APPLIED, warnings=warnings)
