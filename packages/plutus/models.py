"""Data models for the ``plutus`` package.

The ledger API speaks camelCase JSON; the models below use snake_case
attributes with camelCase aliases so payloads validate directly via
``Model.model_validate(payload)``. Unknown keys are ignored because the API
adds fields over time. All models are frozen: the workflow only ever holds
session-scoped copies of ledger state and never edits them in place.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .errors import CurrencyMismatchError


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------


class Money(_WireModel):
    """An amount in integer minor units (pence, cents) of one currency.

    Ordering comparisons are only defined between values of the same
    currency; anything else raises :class:`~plutus.errors.CurrencyMismatchError`.
    """

    currency: str
    minor_units: int = Field(strict=True)

    @field_validator("currency")
    @classmethod
    def _normalize_currency(cls, v: str) -> str:
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"currency must be a 3-letter ISO-4217 code; got {v!r}")
        return code

    def _same_currency(self, other: Money) -> None:
        if not isinstance(other, Money):
            raise TypeError(f"cannot compare Money with {type(other).__name__}")
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __lt__(self, other: Money) -> bool:
        self._same_currency(other)
        return self.minor_units < other.minor_units

    def __le__(self, other: Money) -> bool:
        self._same_currency(other)
        return self.minor_units <= other.minor_units

    def __gt__(self, other: Money) -> bool:
        self._same_currency(other)
        return self.minor_units > other.minor_units

    def __ge__(self, other: Money) -> bool:
        self._same_currency(other)
        return self.minor_units >= other.minor_units

    def covers(self, other: Money) -> bool:
        """Return ``True`` when this amount is at least ``other``."""
        return self >= other

    def format(self) -> str:
        """Render as ``"GBP 12.50"`` (two decimal places)."""
        sign = "-" if self.minor_units < 0 else ""
        major, minor = divmod(abs(self.minor_units), 100)
        return f"{self.currency} {sign}{major}.{minor:02d}"

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def __str__(self) -> str:
        return self.format()


# ---------------------------------------------------------------------------
# Ledger records
# ---------------------------------------------------------------------------


class Direction(StrEnum):
    IN = "IN"
    OUT = "OUT"


class TransactionStatus(StrEnum):
    UPCOMING = "UPCOMING"
    PENDING = "PENDING"
    REVERSED = "REVERSED"
    SETTLED = "SETTLED"
    DECLINED = "DECLINED"
    REFUNDED = "REFUNDED"
    RETRYING = "RETRYING"
    ACCOUNT_CHECK = "ACCOUNT_CHECK"


DEFAULT_ACCOUNT_LABEL = "Personal Account"


class Account(_WireModel):
    account_uid: str
    account_type: str
    default_category: str
    currency: str
    created_at: datetime
    name: str | None = None

    @property
    def label(self) -> str:
        return self.name or DEFAULT_ACCOUNT_LABEL


class Transaction(_WireModel):
    """One feed item from the account's transaction history.

    ``direction``, ``status`` and ``source`` are kept as plain strings: the
    ledger may report values this package does not know about, and those must
    parse cleanly so the eligibility filter can reject them. Compare against
    :class:`Direction` / :class:`TransactionStatus` members.

    ``user_note`` doubles as the reconciliation marker (see
    :mod:`plutus.eligibility`).
    """

    feed_item_uid: str
    category_uid: str
    amount: Money
    source_amount: Money | None = None
    direction: str
    transaction_time: datetime
    settlement_time: datetime | None = None
    updated_at: datetime | None = None
    source: str | None = None
    status: str
    counter_party_name: str | None = None
    counter_party_type: str | None = None
    reference: str | None = None
    country: str | None = None
    spending_category: str | None = None
    user_note: str | None = None


class SavingsGoal(_WireModel):
    """A space. ``total_saved`` is the withdrawable balance, when reported."""

    savings_goal_uid: str
    name: str
    target: Money | None = None
    total_saved: Money | None = None
    saved_percentage: float | None = None


# ---------------------------------------------------------------------------
# Response envelopes
# ---------------------------------------------------------------------------


def _none_as_empty(v: Any) -> Any:
    # The API occasionally sends ``null`` instead of an empty list.
    return [] if v is None else v


class AccountsResponse(_WireModel):
    accounts: Annotated[list[Account], BeforeValidator(_none_as_empty)] = Field(default_factory=list)


class FeedItemsResponse(_WireModel):
    feed_items: Annotated[list[Transaction], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list
    )


class SpacesResponse(_WireModel):
    savings_goals: Annotated[list[SavingsGoal], BeforeValidator(_none_as_empty)] = Field(
        default_factory=list
    )


__all__ = [
    "Money",
    "Direction",
    "TransactionStatus",
    "Account",
    "Transaction",
    "SavingsGoal",
    "AccountsResponse",
    "FeedItemsResponse",
    "SpacesResponse",
    "DEFAULT_ACCOUNT_LABEL",
]
