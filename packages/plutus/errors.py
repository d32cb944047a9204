"""Error taxonomy for the ``plutus`` package.

Gateway failures surface as :class:`LedgerError`. The workflow translates
those into the :class:`ReconciliationError` family at each operation
boundary so the front end can print one user-facing message per failure and
keep going:

- :class:`FetchFailure` - a list call failed; nothing was mutated.
- :class:`MarkFailure` - the annotate call failed; no funds moved.
- :class:`WithdrawFailure` - the withdraw call failed; nothing changed.
- :class:`PostWithdrawMarkFailure` - funds moved but the transaction was not
  marked. This is the only failure that leaves the ledger inconsistent.
- :class:`WorkflowStateError` - an operation was requested from the wrong
  stage (or while a call was in flight); no remote call was made.
"""

from __future__ import annotations

from typing import Any


class PlutusError(Exception):
    """Base class for every error raised by ``plutus``."""


class LedgerError(PlutusError):
    """A ledger API call failed (non-2xx response, transport error, bad payload).

    ``status_code`` is ``None`` when no HTTP response was received.
    """

    def __init__(self, message: str, *, status_code: int | None = None, body: str = "", endpoint: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.endpoint = endpoint


class CurrencyMismatchError(PlutusError, ValueError):
    """Two ``Money`` values with different currencies were compared."""

    def __init__(self, left: str, right: str) -> None:
        super().__init__(f"cannot compare amounts in different currencies: {left} vs {right}")
        self.left = left
        self.right = right


class ReconciliationError(PlutusError):
    """A workflow operation failed; ``user_message`` is safe to show as-is."""

    def __init__(self, user_message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(user_message)
        self.user_message = user_message
        self.cause = cause


class FetchFailure(ReconciliationError):
    pass


class MarkFailure(ReconciliationError):
    pass


class WithdrawFailure(ReconciliationError):
    pass


class PostWithdrawMarkFailure(ReconciliationError):
    """The withdrawal succeeded but marking the transaction failed.

    The ledger is now inconsistent: money left the space but the transaction
    is still unmarked and will be offered again. ``details`` carries the
    identifiers needed to repair it by hand.
    """

    def __init__(self, user_message: str, *, details: dict[str, Any], cause: BaseException | None = None) -> None:
        super().__init__(user_message, cause=cause)
        self.details = details


class WorkflowStateError(ReconciliationError):
    pass


class WorkflowBusyError(WorkflowStateError):
    pass


class IneligibleSpaceError(WorkflowStateError):
    pass


class AlreadyWithdrawnError(WorkflowStateError):
    pass


__all__ = [
    "PlutusError",
    "LedgerError",
    "CurrencyMismatchError",
    "ReconciliationError",
    "FetchFailure",
    "MarkFailure",
    "WithdrawFailure",
    "PostWithdrawMarkFailure",
    "WorkflowStateError",
    "WorkflowBusyError",
    "IneligibleSpaceError",
    "AlreadyWithdrawnError",
]
