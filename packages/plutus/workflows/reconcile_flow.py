"""Interactive reconcile flow: the terminal front end for the workflow.

This module walks an operator through the reconcile steps (choose account →
choose transaction → Categorize or Ignore → choose a space → confirm) on
top of :class:`~plutus.workflow.ReconciliationWorkflow`. It holds no
business rules of its own: every decision is delegated to the workflow, and
every :class:`~plutus.errors.ReconciliationError` is printed as a single
``Error: ...`` line before the loop carries on from the state the workflow
kept.

Prompts are injectable (``choose``/``confirm_fn``/``print_fn``) so tests can
drive the loop without a terminal.
"""

from __future__ import annotations

import builtins
from collections.abc import Callable, Collection, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from ..errors import PostWithdrawMarkFailure, ReconciliationError
from ..formatting import fmt_space_option, fmt_tx_summary
from ..logging_setup import get_logger
from ..models import Transaction
from ..term_ui import confirm as _confirm
from ..term_ui import select_option as _select_option
from ..workflow import ReconcileOutcome, ReconciliationWorkflow, Stage

logger = get_logger("plutus.workflows.reconcile_flow")


class Chooser(Protocol):
    def __call__(
        self,
        labels: Sequence[str],
        *,
        message: str = ...,
        disabled: Collection[int] = ...,
        disabled_reason: str = ...,
    ) -> int | None: ...


ACTION_REFRESH = "Refresh transactions"
ACTION_SWITCH_ACCOUNT = "Switch account"
ACTION_RESET = "Reset"
ACTION_QUIT = "Quit"
ACTION_CATEGORIZE = "Categorize (cover from a space)"
ACTION_IGNORE = "Ignore (tag without moving money)"
ACTION_BACK = "Back"


@dataclass(slots=True)
class ReconcileSummary:
    """Tally of what happened during one interactive session."""

    outcomes: list[ReconcileOutcome] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def transferred(self) -> int:
        return sum(1 for o in self.outcomes if o.space is not None)

    @property
    def ignored(self) -> int:
        return sum(1 for o in self.outcomes if o.space is None)


class _Session:
    def __init__(
        self,
        workflow: ReconciliationWorkflow,
        *,
        choose: Chooser,
        confirm_fn: Callable[[str], bool],
        print_fn: Callable[..., None],
    ) -> None:
        self.wf = workflow
        self.choose = choose
        self.confirm_fn = confirm_fn
        self.print = print_fn
        self.summary = ReconcileSummary()
        self.pick_account = True

    def _fail(self, e: ReconciliationError) -> None:
        self.summary.errors.append(e.user_message)
        if isinstance(e, PostWithdrawMarkFailure):
            self.print(f"WARNING: {e.user_message}")
        else:
            self.print(f"Error: {e.user_message}")

    # ---- steps -------------------------------------------------------------
    # Each step returns False when the operator quits.

    def setup(self) -> bool:
        try:
            accounts = self.wf.load_accounts()
        except ReconciliationError as e:
            self._fail(e)
            return self.confirm_fn("Retry loading accounts?")
        if not accounts:
            self.print("No accounts found for this token.")
            return False
        self.pick_account = True
        return True

    def select_account(self) -> bool:
        accounts = self.wf.accounts
        self.print("Select Account")
        labels = [f"{a.label} ({a.account_type})" for a in accounts]
        for i, label in enumerate(labels, start=1):
            self.print(f"  {i}. {label}")
        idx = self.choose(labels, message="Account: ")
        if idx is None:
            if self.wf.stage == Stage.TRANSACTIONS_LOADED:
                # Cancelled a switch; keep the current account.
                self.pick_account = False
                return True
            return False
        try:
            self.wf.select_account(accounts[idx])
        except ReconciliationError as e:
            self._fail(e)
            return True
        self.pick_account = False
        return True

    def select_transaction(self) -> bool:
        txs = self.wf.transactions
        self.print("")
        self.print(f"Select Transaction ({len(txs)} available)")
        if not txs:
            self.print(
                f"No eligible transactions found in the last {self.wf.settings.days_to_fetch} days"
            )
        labels = [fmt_tx_summary(tx) for tx in txs]
        for i, label in enumerate(labels, start=1):
            self.print(f"  {i}. {label}")
        actions = [ACTION_REFRESH, ACTION_SWITCH_ACCOUNT, ACTION_RESET, ACTION_QUIT]
        for i, label in enumerate(actions, start=len(labels) + 1):
            self.print(f"  {i}. {label}")

        idx = self.choose(labels + actions, message="Transaction or action: ")
        if idx is None:
            return False
        if idx >= len(txs):
            return self._transaction_list_action(actions[idx - len(txs)])
        return self._transaction_action(txs[idx])

    def _transaction_list_action(self, action: str) -> bool:
        if action == ACTION_QUIT:
            return False
        if action == ACTION_RESET:
            self.wf.reset()
            return True
        if action == ACTION_SWITCH_ACCOUNT:
            self.pick_account = True
            return True
        try:
            self.wf.refresh_transactions()
        except ReconciliationError as e:
            self._fail(e)
        return True

    def _transaction_action(self, tx: Transaction) -> bool:
        self.print(fmt_tx_summary(tx))
        actions = [ACTION_CATEGORIZE, ACTION_IGNORE, ACTION_BACK]
        disabled: set[int] = set()
        if self.wf.has_unmarked_withdrawal(tx):
            self.print("Money was already withdrawn for this transaction; it only needs tagging.")
            disabled.add(0)
        for i, label in enumerate(actions, start=1):
            self.print(f"  {i}. {label}")
        idx = self.choose(
            actions,
            message="Action: ",
            disabled=disabled,
            disabled_reason="Already withdrawn; choose Ignore to tag it.",
        )
        if idx is None or actions[idx] == ACTION_BACK:
            return True
        try:
            if actions[idx] == ACTION_IGNORE:
                outcome = self.wf.ignore(tx)
                self.summary.outcomes.append(outcome)
                self.print(outcome.message)
            else:
                self.wf.categorize(tx)
        except ReconciliationError as e:
            self._fail(e)
        return True

    def select_space(self) -> bool:
        tx = self.wf.selected_transaction
        assert tx is not None
        options = self.wf.space_options
        self.print("")
        self.print("Select Space to Withdraw From")
        self.print(f"Transaction: {fmt_tx_summary(tx)}")
        if not options:
            self.print("No savings goals found")
        labels = [fmt_space_option(o) for o in options]
        disabled = {i for i, o in enumerate(options) if not o.eligible}
        for i, label in enumerate(labels, start=1):
            self.print(f"  {i}. {label}")
        self.print(f"  {len(labels) + 1}. {ACTION_BACK}")

        idx = self.choose(
            labels + [ACTION_BACK],
            message="Space: ",
            disabled=disabled,
            disabled_reason="Insufficient funds in that space.",
        )
        if idx is None or idx == len(labels):
            self.wf.back()
            return True
        try:
            space = self.wf.select_space(options[idx].space)
        except ReconciliationError as e:
            self._fail(e)
            return True
        if not self.confirm_fn(
            f"Withdraw {tx.amount.format()} from {space.name} and tag the transaction?"
        ):
            self.wf.back()
            return True
        try:
            outcome = self.wf.confirm_transfer()
        except ReconciliationError as e:
            self._fail(e)
            return True
        self.summary.outcomes.append(outcome)
        self.print(outcome.message)
        return True

    def step(self) -> bool:
        stage = self.wf.stage
        if stage == Stage.SETUP:
            return self.setup()
        if stage == Stage.ACCOUNTS_LOADED or (
            stage == Stage.TRANSACTIONS_LOADED and self.pick_account
        ):
            return self.select_account()
        if stage == Stage.TRANSACTIONS_LOADED:
            return self.select_transaction()
        return self.select_space()


def run_reconcile_flow(
    workflow: ReconciliationWorkflow,
    *,
    choose: Chooser | None = None,
    confirm_fn: Callable[[str], bool] | None = None,
    print_fn: Callable[..., None] = builtins.print,
) -> ReconcileSummary:
    """Run the interactive loop until the operator quits.

    Parameters
    ----------
    workflow:
        A workflow wired to a gateway; usually fresh (``SETUP`` stage).
    choose:
        Picks one of a list of labels and returns its index (``None`` to
        quit/cancel). Defaults to :func:`plutus.term_ui.select_option`.
    confirm_fn:
        Yes/no question. Defaults to :func:`plutus.term_ui.confirm`.
    print_fn:
        Output function. Defaults to ``builtins.print``.

    Returns
    -------
    ReconcileSummary
        Every successful outcome and every error message shown.
    """

    session = _Session(
        workflow,
        choose=choose or _select_option,
        confirm_fn=confirm_fn or _confirm,
        print_fn=print_fn,
    )
    while session.step():
        pass

    summary = session.summary
    print_fn(
        f"Done: {summary.transferred} covered from spaces, {summary.ignored} ignored, "
        f"{len(summary.errors)} error(s)."
    )
    for pending in workflow.unmarked_withdrawals:
        print_fn(
            "Still untagged after a withdrawal: "
            f"{fmt_tx_summary(pending.transaction)} (from {pending.space.name})"
        )
    logger.info(
        "reconcile session finished: %d transferred, %d ignored, %d errors",
        summary.transferred,
        summary.ignored,
        len(summary.errors),
    )
    return summary


__all__ = ["run_reconcile_flow", "ReconcileSummary", "Chooser"]
