"""Public interface for the ``plutus`` package.

This module exposes the package's API functions and public models/types as the
stable import surface. There is no runtime logic here, only symbol re-exports.
"""

from .api import (
    build_workflow,
    list_accounts,
    list_eligible_transactions,
    list_space_options,
    open_gateway,
)
from .config import Settings
from .eligibility import (
    TRANSFER_TAG,
    SpaceOption,
    compose_reconciled_note,
    filter_eligible_transactions,
    is_eligible_transaction,
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
    PlutusError,
    PostWithdrawMarkFailure,
    ReconciliationError,
    WithdrawFailure,
    WorkflowBusyError,
    WorkflowStateError,
)
from .gateway import LedgerGateway, StarlingGateway
from .models import Account, Direction, Money, SavingsGoal, Transaction, TransactionStatus
from .workflow import ReconcileOutcome, ReconciliationWorkflow, Stage, UnmarkedWithdrawal

__all__ = [
    # API
    "open_gateway",
    "build_workflow",
    "list_accounts",
    "list_eligible_transactions",
    "list_space_options",
    # Rules
    "TRANSFER_TAG",
    "SpaceOption",
    "compose_reconciled_note",
    "filter_eligible_transactions",
    "is_eligible_transaction",
    "is_reconciled",
    "is_space_eligible",
    "rank_spaces",
    # Workflow
    "ReconciliationWorkflow",
    "ReconcileOutcome",
    "UnmarkedWithdrawal",
    "Stage",
    "Settings",
    # Gateway
    "LedgerGateway",
    "StarlingGateway",
    # Models
    "Account",
    "Direction",
    "Money",
    "SavingsGoal",
    "Transaction",
    "TransactionStatus",
    # Errors
    "PlutusError",
    "LedgerError",
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
