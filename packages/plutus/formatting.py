"""Plain-text presentation helpers shared by the CLI and the interactive flow."""

from __future__ import annotations

from .eligibility import SpaceOption
from .models import Account, Money, Transaction


def format_amount(amount: Money | None) -> str:
    return amount.format() if amount is not None else "N/A"


def fmt_account_row(account: Account) -> str:
    return f"{account.account_uid}\t{account.label}\t{account.account_type}\t{account.currency}"


def fmt_tx_row(tx: Transaction) -> str:
    date = tx.transaction_time.date().isoformat()
    name = (tx.counter_party_name or "").strip()
    return (
        f"{tx.feed_item_uid}\t{date}\t{tx.amount.format()}\t{tx.status}\t{name[:60]}\t"
        f"{tx.reference or ''}"
    )


def fmt_tx_summary(tx: Transaction) -> str:
    """One-line, human-readable summary used in prompts."""
    name = (tx.counter_party_name or "").strip() or "Unknown"
    reference = (tx.reference or "").strip() or "No reference"
    date = tx.transaction_time.date().isoformat()
    return f"{tx.amount.format()} to {name} on {date} ({reference})"


def fmt_space_option(option: SpaceOption) -> str:
    balance = format_amount(option.space.total_saved)
    line = f"{option.space.name} (balance: {balance})"
    if not option.eligible:
        line += " - insufficient funds"
    return line


def fmt_space_row(option: SpaceOption) -> str:
    flag = "eligible" if option.eligible else "insufficient"
    return (
        f"{option.savings_goal_uid}\t{option.space.name}\t"
        f"{format_amount(option.space.total_saved)}\t{flag}"
    )


__all__ = [
    "format_amount",
    "fmt_account_row",
    "fmt_tx_row",
    "fmt_tx_summary",
    "fmt_space_option",
    "fmt_space_row",
]
