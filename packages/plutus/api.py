"""Public API entry points for the ``plutus`` package.

This module wires the pieces together for callers that do not want to
assemble a gateway and workflow by hand. Business rules live in
``plutus.eligibility`` and ``plutus.workflow``; the functions here only
construct objects and pass ``Settings`` through explicitly.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import httpx

from .config import Settings
from .eligibility import SpaceOption, filter_eligible_transactions, rank_spaces
from .gateway import LedgerGateway, StarlingGateway
from .models import Account, Transaction
from .workflow import ReconciliationWorkflow


@contextmanager
def open_gateway(
    settings: Settings, *, transport: httpx.BaseTransport | None = None
) -> Iterator[StarlingGateway]:
    """Yield a Starling gateway for ``settings`` and close it afterwards.

    Raises ``ValueError`` when ``settings`` carries no access token.
    """

    if not settings.has_token:
        raise ValueError("An access token is required (set STARLING_ACCESS_TOKEN or pass --token).")
    gateway = StarlingGateway.from_settings(settings, transport=transport)
    try:
        yield gateway
    finally:
        gateway.close()


def build_workflow(gateway: LedgerGateway, settings: Settings | None = None) -> ReconciliationWorkflow:
    return ReconciliationWorkflow(gateway, settings or Settings())


def list_eligible_transactions(
    gateway: LedgerGateway, account_uid: str, settings: Settings | None = None
) -> list[Transaction]:
    """One-shot: fetch the recent window for ``account_uid`` and filter it.

    Uses a throwaway workflow so the window and filter match the interactive
    path exactly.
    """

    workflow = build_workflow(gateway, settings)
    workflow.load_accounts()
    return workflow.select_account(account_uid)


def list_accounts(gateway: LedgerGateway) -> list[Account]:
    return build_workflow(gateway).load_accounts()


def list_space_options(
    gateway: LedgerGateway, account_uid: str, transaction: Transaction | None = None
) -> list[SpaceOption]:
    """Fetch spaces for ``account_uid``, ranked against ``transaction``.

    Without a transaction every space is reported as ineligible (the rule
    fails closed).
    """

    return rank_spaces(transaction, gateway.list_spaces(account_uid))


__all__ = [
    "open_gateway",
    "build_workflow",
    "list_accounts",
    "list_eligible_transactions",
    "list_space_options",
    "filter_eligible_transactions",
]
