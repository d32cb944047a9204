"""Reconciliation workflow: account → transaction → (space) → withdraw + mark.

:class:`ReconciliationWorkflow` owns every piece of session state (fetched
accounts, the candidate transaction set, the current selections) and is the
only component that sequences ledger calls. It is synchronous and
single-threaded. A gateway call in flight marks the workflow ``busy`` and any
other operation started in that window is refused with
:class:`~plutus.errors.WorkflowBusyError`, so two calls for the same
transaction can never overlap.

Stages
------
``SETUP`` → ``ACCOUNTS_LOADED`` → ``TRANSACTIONS_LOADED`` ⇄ ``SPACES_LOADED``

A successful mark (``ignore`` or ``confirm_transfer``) always lands back in
``TRANSACTIONS_LOADED`` with the transaction removed from the candidate set
and nothing selected. ``reset`` returns to ``SETUP`` from anywhere without
calling the ledger.

Failure handling
----------------
Gateway errors are translated at each operation boundary into the
:class:`~plutus.errors.ReconciliationError` family and leave local state
exactly as it was before the call, with one exception: when a withdrawal
succeeds but the follow-up mark fails
(:class:`~plutus.errors.PostWithdrawMarkFailure`) the money has already
moved. The workflow logs the identifiers at ERROR, remembers the item in
:attr:`ReconciliationWorkflow.unmarked_withdrawals`, and from then on refuses
to withdraw for it again; ``ignore`` (mark only) is the way to finish it.
A later fetch that shows the item already tagged also clears it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from .config import Settings
from .eligibility import (
    SpaceOption,
    compose_reconciled_note,
    filter_eligible_transactions,
    is_reconciled,
    is_space_eligible,
    rank_spaces,
)
from .errors import (
    AlreadyWithdrawnError,
    FetchFailure,
    IneligibleSpaceError,
    LedgerError,
    MarkFailure,
    PostWithdrawMarkFailure,
    WithdrawFailure,
    WorkflowBusyError,
    WorkflowStateError,
)
from .gateway import LedgerGateway
from .logging_setup import get_logger
from .models import Account, Money, SavingsGoal, Transaction

logger = get_logger("plutus.workflow")


class Stage(StrEnum):
    SETUP = "setup"
    ACCOUNTS_LOADED = "accounts_loaded"
    TRANSACTIONS_LOADED = "transactions_loaded"
    SPACES_LOADED = "spaces_loaded"


@dataclass(frozen=True, slots=True)
class ReconcileOutcome:
    """What a successful ``ignore``/``confirm_transfer`` did."""

    transaction: Transaction
    note: str
    space: SavingsGoal | None = None

    @property
    def withdrawn(self) -> Money | None:
        return self.transaction.amount if self.space is not None else None

    @property
    def message(self) -> str:
        if self.space is None:
            return "Transaction tagged successfully!"
        return (
            f"Moved {self.transaction.amount.format()} from {self.space.name} "
            "and tagged the transaction."
        )


@dataclass(frozen=True, slots=True)
class UnmarkedWithdrawal:
    """A withdrawal that went through while marking its transaction failed."""

    account_uid: str
    transaction: Transaction
    space: SavingsGoal
    amount: Money
    note: str


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ReconciliationWorkflow:
    """Session-scoped state machine driving one reconciliation session.

    Parameters
    ----------
    gateway:
        The ledger to read from and write to.
    settings:
        Session settings; only ``days_to_fetch`` and
        ``exclude_direct_debits`` are consulted here.
    clock:
        Returns "now" as an aware datetime; injectable for tests.
    """

    def __init__(
        self,
        gateway: LedgerGateway,
        settings: Settings | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._gateway = gateway
        self._settings = settings or Settings()
        self._clock = clock

        self._busy = False
        # Bumped by reset(); results of a call that straddles a reset are
        # not applied to local state.
        self._generation = 0
        self._unmarked: dict[str, UnmarkedWithdrawal] = {}

        self._stage = Stage.SETUP
        self._accounts: list[Account] = []
        self._account: Account | None = None
        self._candidates: list[Transaction] = []
        self._transaction: Transaction | None = None
        self._space_options: list[SpaceOption] = []
        self._space: SavingsGoal | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def accounts(self) -> tuple[Account, ...]:
        return tuple(self._accounts)

    @property
    def selected_account(self) -> Account | None:
        return self._account

    @property
    def transactions(self) -> tuple[Transaction, ...]:
        """The current candidate set, in feed order."""
        return tuple(self._candidates)

    @property
    def selected_transaction(self) -> Transaction | None:
        return self._transaction

    @property
    def space_options(self) -> tuple[SpaceOption, ...]:
        return tuple(self._space_options)

    @property
    def selected_space(self) -> SavingsGoal | None:
        return self._space

    @property
    def unmarked_withdrawals(self) -> tuple[UnmarkedWithdrawal, ...]:
        return tuple(self._unmarked.values())

    def has_unmarked_withdrawal(self, tx: Transaction | str) -> bool:
        uid = tx if isinstance(tx, str) else tx.feed_item_uid
        return uid in self._unmarked

    # ------------------------------------------------------------------
    # Guards and helpers
    # ------------------------------------------------------------------

    def _ensure_idle(self) -> None:
        if self._busy:
            raise WorkflowBusyError("A request is still in progress; wait for it to finish.")

    def _require_stage(self, action: str, *allowed: Stage) -> None:
        self._ensure_idle()
        if self._stage not in allowed:
            raise WorkflowStateError(f"Cannot {action} right now (stage: {self._stage}).")

    @contextmanager
    def _remote_call(self) -> Iterator[None]:
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    def _set_stage(self, stage: Stage) -> None:
        if stage != self._stage:
            logger.info("workflow stage %s -> %s", self._stage, stage)
        self._stage = stage

    def _clear_space_step(self) -> None:
        self._space_options = []
        self._space = None

    def _clear_transaction_step(self) -> None:
        self._clear_space_step()
        self._transaction = None

    def _clear_account_step(self) -> None:
        self._clear_transaction_step()
        self._candidates = []
        self._account = None

    def _resolve_account(self, account: Account | str) -> Account:
        uid = account if isinstance(account, str) else account.account_uid
        for acc in self._accounts:
            if acc.account_uid == uid:
                return acc
        raise WorkflowStateError(f"Unknown account: {uid}")

    def _resolve_transaction(self, tx: Transaction | str | None) -> Transaction:
        if tx is None:
            if self._transaction is None:
                raise WorkflowStateError("Select a transaction first.")
            return self._transaction
        uid = tx if isinstance(tx, str) else tx.feed_item_uid
        for cand in self._candidates:
            if cand.feed_item_uid == uid:
                return cand
        raise WorkflowStateError("That transaction is no longer available for reconciliation.")

    def _window(self) -> tuple[datetime, datetime]:
        until = self._clock()
        return until - timedelta(days=self._settings.days_to_fetch), until

    def _fetch_candidates(self, account: Account) -> list[Transaction]:
        since, until = self._window()
        with self._remote_call():
            try:
                feed = self._gateway.list_transactions(account.account_uid, since=since, until=until)
            except LedgerError as e:
                logger.warning("listing transactions for %s failed: %s", account.account_uid, e)
                raise FetchFailure(f"Could not load transactions: {e}", cause=e) from e
        self._forget_tagged_elsewhere(feed)
        eligible = filter_eligible_transactions(
            feed, exclude_direct_debits=self._settings.exclude_direct_debits
        )
        logger.info(
            "account %s: %d of %d transactions eligible", account.account_uid, len(eligible), len(feed)
        )
        return eligible

    def _forget_tagged_elsewhere(self, feed: list[Transaction]) -> None:
        for tx in feed:
            if tx.feed_item_uid in self._unmarked and is_reconciled(tx):
                logger.info("%s is now tagged; dropping it from pending repairs", tx.feed_item_uid)
                del self._unmarked[tx.feed_item_uid]

    def _annotate(self, account: Account, tx: Transaction) -> str:
        note = compose_reconciled_note(tx.user_note)
        self._gateway.annotate_transaction(
            account.account_uid, tx.category_uid, tx.feed_item_uid, note
        )
        return note

    def _on_marked(self, tx: Transaction) -> None:
        self._candidates = [c for c in self._candidates if c.feed_item_uid != tx.feed_item_uid]
        self._clear_transaction_step()
        self._set_stage(Stage.TRANSACTIONS_LOADED)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def load_accounts(self) -> list[Account]:
        """Fetch the accounts behind the token and discard any prior selection."""
        self._ensure_idle()
        gen = self._generation
        with self._remote_call():
            try:
                accounts = self._gateway.list_accounts()
            except LedgerError as e:
                logger.warning("listing accounts failed: %s", e)
                raise FetchFailure(f"Could not load accounts: {e}", cause=e) from e
        if gen == self._generation:
            self._clear_account_step()
            self._accounts = list(accounts)
            self._set_stage(Stage.ACCOUNTS_LOADED)
        return list(accounts)

    def select_account(self, account: Account | str) -> list[Transaction]:
        """Choose an account and load its eligible recent transactions."""
        self._require_stage(
            "select an account",
            Stage.ACCOUNTS_LOADED,
            Stage.TRANSACTIONS_LOADED,
            Stage.SPACES_LOADED,
        )
        acc = self._resolve_account(account)
        gen = self._generation
        candidates = self._fetch_candidates(acc)
        if gen == self._generation:
            self._clear_account_step()
            self._account = acc
            self._candidates = candidates
            self._set_stage(Stage.TRANSACTIONS_LOADED)
        return list(candidates)

    def refresh_transactions(self) -> list[Transaction]:
        """Re-fetch the candidate set for the selected account."""
        self._require_stage(
            "refresh transactions", Stage.TRANSACTIONS_LOADED, Stage.SPACES_LOADED
        )
        assert self._account is not None  # set whenever transactions are loaded
        acc = self._account
        gen = self._generation
        candidates = self._fetch_candidates(acc)
        if gen == self._generation:
            self._clear_transaction_step()
            self._candidates = candidates
            self._set_stage(Stage.TRANSACTIONS_LOADED)
        return list(candidates)

    def select_transaction(self, tx: Transaction | str) -> Transaction:
        self._require_stage("select a transaction", Stage.TRANSACTIONS_LOADED)
        chosen = self._resolve_transaction(tx)
        self._transaction = chosen
        return chosen

    def ignore(self, tx: Transaction | str | None = None) -> ReconcileOutcome:
        """Mark a transaction as handled without moving any money."""
        self._require_stage("ignore a transaction", Stage.TRANSACTIONS_LOADED)
        chosen = self._resolve_transaction(tx)
        acc = self._account
        assert acc is not None
        gen = self._generation
        with self._remote_call():
            try:
                note = self._annotate(acc, chosen)
            except LedgerError as e:
                logger.warning("marking %s failed: %s", chosen.feed_item_uid, e)
                raise MarkFailure(
                    f"Could not mark the transaction as handled: {e}", cause=e
                ) from e
        # A pending post-withdraw repair is complete once the mark lands.
        self._unmarked.pop(chosen.feed_item_uid, None)
        if gen == self._generation:
            self._on_marked(chosen)
        logger.info("marked %s as handled (no withdrawal)", chosen.feed_item_uid)
        return ReconcileOutcome(transaction=chosen, note=note)

    def categorize(self, tx: Transaction | str | None = None) -> list[SpaceOption]:
        """Load the account's spaces and rank them against the transaction."""
        self._require_stage("categorize a transaction", Stage.TRANSACTIONS_LOADED)
        chosen = self._resolve_transaction(tx)
        if chosen.feed_item_uid in self._unmarked:
            raise AlreadyWithdrawnError(
                "Money was already withdrawn for this transaction but it was not marked; "
                "use Ignore to mark it without withdrawing again."
            )
        acc = self._account
        assert acc is not None
        gen = self._generation
        with self._remote_call():
            try:
                spaces = self._gateway.list_spaces(acc.account_uid)
            except LedgerError as e:
                logger.warning("listing spaces for %s failed: %s", acc.account_uid, e)
                raise FetchFailure(f"Could not load spaces: {e}", cause=e) from e
        options = rank_spaces(chosen, spaces)
        if gen == self._generation:
            self._transaction = chosen
            self._space_options = options
            self._space = None
            self._set_stage(Stage.SPACES_LOADED)
        logger.info(
            "%d of %d spaces can cover %s",
            sum(1 for o in options if o.eligible),
            len(options),
            chosen.feed_item_uid,
        )
        return list(options)

    def select_space(self, space: SavingsGoal | str) -> SavingsGoal:
        self._require_stage("select a space", Stage.SPACES_LOADED)
        uid = space if isinstance(space, str) else space.savings_goal_uid
        for opt in self._space_options:
            if opt.savings_goal_uid == uid:
                if not opt.eligible:
                    raise IneligibleSpaceError(
                        f"{opt.space.name} cannot cover this transaction (insufficient funds)."
                    )
                self._space = opt.space
                return opt.space
        raise WorkflowStateError(f"Unknown space: {uid}")

    def confirm_transfer(self) -> ReconcileOutcome:
        """Withdraw the transaction's amount from the selected space, then mark it.

        The withdrawal always comes first so a failed withdrawal can never
        leave a "handled" marker behind.
        """
        self._require_stage("confirm a transfer", Stage.SPACES_LOADED)
        acc, tx, space = self._account, self._transaction, self._space
        if space is None:
            raise WorkflowStateError("Select a space first.")
        assert acc is not None and tx is not None
        # Balances only come from the last fetch; still refuse anything the
        # rule rejects.
        if not is_space_eligible(tx, space):
            raise IneligibleSpaceError(
                f"{space.name} cannot cover this transaction (insufficient funds)."
            )

        gen = self._generation
        amount = tx.amount
        with self._remote_call():
            try:
                self._gateway.withdraw_from_space(
                    acc.account_uid, space.savings_goal_uid, tx.feed_item_uid, amount
                )
            except LedgerError as e:
                logger.warning(
                    "withdrawing %s from %s failed: %s", amount.format(), space.savings_goal_uid, e
                )
                raise WithdrawFailure(
                    f"Could not withdraw from {space.name}; nothing was changed: {e}", cause=e
                ) from e
            logger.info(
                "withdrew %s from %s for %s", amount.format(), space.savings_goal_uid, tx.feed_item_uid
            )

            try:
                note = self._annotate(acc, tx)
            except LedgerError as e:
                note = compose_reconciled_note(tx.user_note)
                details = {
                    "account_uid": acc.account_uid,
                    "savings_goal_uid": space.savings_goal_uid,
                    "feed_item_uid": tx.feed_item_uid,
                    "category_uid": tx.category_uid,
                    "amount": amount.to_wire(),
                    "note": note,
                }
                logger.error(
                    "INCONSISTENT LEDGER: withdrew %s from space %s for feed item %s "
                    "(account %s, category %s) but tagging it failed: %s",
                    amount.format(),
                    space.savings_goal_uid,
                    tx.feed_item_uid,
                    acc.account_uid,
                    tx.category_uid,
                    e,
                )
                self._unmarked[tx.feed_item_uid] = UnmarkedWithdrawal(
                    account_uid=acc.account_uid,
                    transaction=tx,
                    space=space,
                    amount=amount,
                    note=note,
                )
                if gen == self._generation:
                    self._clear_transaction_step()
                    self._set_stage(Stage.TRANSACTIONS_LOADED)
                raise PostWithdrawMarkFailure(
                    f"{amount.format()} was moved from {space.name}, but tagging the "
                    f"transaction failed: {e}. Use Ignore on it to tag it without "
                    "withdrawing again.",
                    details=details,
                    cause=e,
                ) from e

        if gen == self._generation:
            self._on_marked(tx)
        return ReconcileOutcome(transaction=tx, note=note, space=space)

    def back(self) -> None:
        """Leave space selection and return to the transaction list."""
        self._require_stage("go back", Stage.SPACES_LOADED)
        self._clear_transaction_step()
        self._set_stage(Stage.TRANSACTIONS_LOADED)

    def reset(self) -> None:
        """Return to ``SETUP`` and forget everything fetched; no remote call."""
        self._generation += 1
        self._accounts = []
        self._clear_account_step()
        self._set_stage(Stage.SETUP)


__all__ = [
    "Stage",
    "ReconciliationWorkflow",
    "ReconcileOutcome",
    "UnmarkedWithdrawal",
]
