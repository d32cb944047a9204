"""Eligibility rules for reconciliation.

Two pure rules live here:

- the transaction filter, deciding which feed items may be reconciled at all;
- the space rule, deciding which spaces can fund a given transaction.

Both are re-evaluated from scratch on every fetch. Balances are read fresh
each time and may go down between calls, so nothing here is cached.

The "already reconciled" state is stored in the transaction's free-text user
note: a note containing :data:`TRANSFER_TAG` marks the item as handled. The
ledger offers no dedicated field for this, so the substring convention is
kept exactly as written by earlier versions of the tool.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .models import Direction, SavingsGoal, Transaction, TransactionStatus

TRANSFER_TAG = "transferred: true"
NOTE_SEPARATOR = " | "

DIRECT_DEBIT_SOURCE = "DIRECT_DEBIT"
RECONCILABLE_STATUSES: frozenset[str] = frozenset(
    {TransactionStatus.SETTLED, TransactionStatus.PENDING}
)


# ----------------------------------------------------------------------------
# Note marker
# ----------------------------------------------------------------------------


def is_reconciled(tx: Transaction) -> bool:
    """Return ``True`` when the transaction's note carries the transfer tag."""
    return bool(tx.user_note) and TRANSFER_TAG in tx.user_note


def compose_reconciled_note(existing: str | None) -> str:
    """Return the note to write when marking a transaction as reconciled.

    ``None`` or empty notes become the tag alone; anything else keeps the
    operator's text and appends ``" | transferred: true"``.
    """
    if not existing:
        return TRANSFER_TAG
    return f"{existing}{NOTE_SEPARATOR}{TRANSFER_TAG}"


# ----------------------------------------------------------------------------
# Transaction filter
# ----------------------------------------------------------------------------


def is_eligible_transaction(tx: Transaction, *, exclude_direct_debits: bool = True) -> bool:
    if tx.direction != Direction.OUT:
        return False
    if tx.status not in RECONCILABLE_STATUSES:
        return False
    if exclude_direct_debits and tx.source == DIRECT_DEBIT_SOURCE:
        return False
    return not is_reconciled(tx)


def filter_eligible_transactions(
    transactions: Iterable[Transaction], *, exclude_direct_debits: bool = True
) -> list[Transaction]:
    """Return the reconcilable subset of ``transactions`` in feed order.

    A transaction qualifies when it is outgoing, settled or pending, not a
    direct debit (unless ``exclude_direct_debits`` is ``False``), and not
    already tagged as reconciled.
    """
    return [
        tx
        for tx in transactions
        if is_eligible_transaction(tx, exclude_direct_debits=exclude_direct_debits)
    ]


# ----------------------------------------------------------------------------
# Space rule
# ----------------------------------------------------------------------------


def is_space_eligible(transaction: Transaction | None, space: SavingsGoal | None) -> bool:
    """Return ``True`` when ``space`` holds enough to cover ``transaction``.

    Fails closed: a missing transaction, a missing space, a space without a
    reported balance, or a currency mismatch all count as ineligible. Never
    raises for these cases.
    """
    if transaction is None or space is None:
        return False
    balance = space.total_saved
    if balance is None:
        return False
    if balance.currency != transaction.amount.currency:
        return False
    return balance.covers(transaction.amount)


@dataclass(frozen=True, slots=True)
class SpaceOption:
    """A space paired with whether it can fund the selected transaction."""

    space: SavingsGoal
    eligible: bool

    @property
    def savings_goal_uid(self) -> str:
        return self.space.savings_goal_uid


def rank_spaces(transaction: Transaction | None, spaces: Iterable[SavingsGoal]) -> list[SpaceOption]:
    """Pair every space with its eligibility, sorted by name (case-insensitive).

    Ineligible spaces are kept so a front end can show them as unavailable
    rather than silently hiding them.
    """
    ordered = sorted(spaces, key=lambda s: (s.name.casefold(), s.savings_goal_uid))
    return [SpaceOption(space=s, eligible=is_space_eligible(transaction, s)) for s in ordered]


__all__ = [
    "TRANSFER_TAG",
    "NOTE_SEPARATOR",
    "DIRECT_DEBIT_SOURCE",
    "RECONCILABLE_STATUSES",
    "is_reconciled",
    "compose_reconciled_note",
    "is_eligible_transaction",
    "filter_eligible_transactions",
    "is_space_eligible",
    "SpaceOption",
    "rank_spaces",
]
