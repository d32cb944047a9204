# ruff: noqa: I001
"""CLI for the ``plutus`` package.

This module exposes callable command handlers (e.g., ``cmd_reconcile``) and a
Typer-based console interface. Environment variables (notably
``STARLING_ACCESS_TOKEN``) are loaded from a local ``.env`` using
``python-dotenv`` before delegating to command logic. Business logic lives in
``plutus.workflow`` and ``plutus.eligibility``.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import typer
from dotenv import load_dotenv

from .config import Settings
from .logging_setup import configure_logging


# ---- Small module-level helpers used by CLI commands -------------------------


def _settings_from_options(**overrides: Any) -> Settings | None:
    """Build :class:`Settings` from the environment plus CLI overrides.

    Prints an ``Error:`` line and returns ``None`` when the combination is
    invalid (unknown environment, non-numeric window, ...).
    """

    try:
        return Settings.from_env(**overrides)
    except ValueError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return None


def _open_gateway(settings: Settings):
    """Return a context manager yielding a gateway for ``settings``.

    Kept as a module attribute so tests can swap in a fake ledger.
    """

    from .api import open_gateway

    return open_gateway(settings)


def _require_token(settings: Settings) -> bool:
    if settings.has_token:
        return True
    print(
        "Error: STARLING_ACCESS_TOKEN is not set in the environment (or pass --token).",
        file=sys.stderr,
    )
    return False


# ---- Command handlers --------------------------------------------------------


def cmd_reconcile(settings: Settings) -> int:
    """Run the interactive reconcile loop.

    Prompts for the access token when none is configured. Errors met inside
    the loop are shown there and do not change the exit status; only setup
    failures (no token, cannot open a client) return non-zero.
    """

    from .api import build_workflow
    from .term_ui import prompt_access_token
    from .workflows.reconcile_flow import run_reconcile_flow

    if not settings.has_token:
        token = prompt_access_token()
        if not token:
            print("Error: an access token is required.", file=sys.stderr)
            return 1
        settings = settings.with_token(token)

    try:
        with _open_gateway(settings) as gateway:
            run_reconcile_flow(build_workflow(gateway, settings))
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except (KeyboardInterrupt, EOFError):
        print("Aborted.", file=sys.stderr)
        return 130
    return 0


def cmd_accounts(settings: Settings) -> int:
    """Print one ``<uid>\\t<name>\\t<type>\\t<currency>`` line per account."""

    from .api import list_accounts
    from .errors import ReconciliationError
    from .formatting import fmt_account_row

    if not _require_token(settings):
        return 1
    try:
        with _open_gateway(settings) as gateway:
            accounts = list_accounts(gateway)
    except ReconciliationError as e:
        print(f"Error: {e.user_message}", file=sys.stderr)
        return 1
    for account in accounts:
        print(fmt_account_row(account))
    return 0


def cmd_transactions(settings: Settings, account_uid: str) -> int:
    """Print the transactions still awaiting reconciliation, in feed order."""

    from .api import list_eligible_transactions
    from .errors import ReconciliationError
    from .formatting import fmt_tx_row

    if not _require_token(settings):
        return 1
    try:
        with _open_gateway(settings) as gateway:
            txs = list_eligible_transactions(gateway, account_uid, settings)
    except ReconciliationError as e:
        print(f"Error: {e.user_message}", file=sys.stderr)
        return 1
    for tx in txs:
        print(fmt_tx_row(tx))
    return 0


def cmd_spaces(settings: Settings, account_uid: str, feed_item_uid: str | None = None) -> int:
    """Print the account's spaces, flagged against one transaction if given.

    Without ``feed_item_uid`` every space is flagged ``insufficient``: no
    space is eligible without a transaction to cover.
    """

    from .api import list_eligible_transactions, list_space_options
    from .errors import LedgerError, ReconciliationError
    from .formatting import fmt_space_row

    if not _require_token(settings):
        return 1
    try:
        with _open_gateway(settings) as gateway:
            tx = None
            if feed_item_uid:
                txs = list_eligible_transactions(gateway, account_uid, settings)
                tx = next((t for t in txs if t.feed_item_uid == feed_item_uid), None)
                if tx is None:
                    print(
                        f"Error: transaction {feed_item_uid} is not awaiting reconciliation "
                        f"in the last {settings.days_to_fetch} days.",
                        file=sys.stderr,
                    )
                    return 1
            options = list_space_options(gateway, account_uid, tx)
    except ReconciliationError as e:
        print(f"Error: {e.user_message}", file=sys.stderr)
        return 1
    except LedgerError as e:
        print(f"Error: could not load spaces: {e}", file=sys.stderr)
        return 1
    for option in options:
        print(fmt_space_row(option))
    return 0


# ---- Typer-based console interface -------------------------------------------


app = typer.Typer(
    no_args_is_help=True,
    add_completion=False,
    help=(
        "Reconcile Starling transactions against savings spaces. "
        "Loads STARLING_ACCESS_TOKEN from a local .env before running."
    ),
)


TOKEN_OPTION = typer.Option(
    None, "--token", help="Override STARLING_ACCESS_TOKEN (falls back to env var)."
)
ENV_OPTION = typer.Option(None, "--env", help="API environment: live or dev (sandbox).")
BASE_URL_OPTION = typer.Option(
    None, "--base-url", help="Override the API base URL (falls back to PLUTUS_BASE_URL)."
)
DAYS_OPTION = typer.Option(
    None, "--days", min=1, help="Transaction window in days (falls back to PLUTUS_DAYS_TO_FETCH)."
)
INCLUDE_DD_OPTION = typer.Option(
    False,
    "--include-direct-debits",
    help="Offer direct debits for reconciliation (falls back to PLUTUS_INCLUDE_DIRECT_DEBITS).",
)
ACCOUNT_UID_OPTION = typer.Option(..., "--account-uid", help="Account to read from.")


def _settings_or_exit(
    token: str | None,
    env: str | None,
    base_url: str | None,
    days: int | None,
    include_direct_debits: bool,
) -> Settings:
    settings = _settings_from_options(
        access_token=token.strip() if token else None,
        environment=env.strip().lower() if env else None,
        base_url=base_url,
        days_to_fetch=days,
        exclude_direct_debits=False if include_direct_debits else None,
    )
    if settings is None:
        raise typer.Exit(1)
    return settings


@app.command("reconcile")
def reconcile_cmd(
    *,
    token: str | None = TOKEN_OPTION,
    env: str | None = ENV_OPTION,
    base_url: str | None = BASE_URL_OPTION,
    days: int | None = DAYS_OPTION,
    include_direct_debits: bool = INCLUDE_DD_OPTION,
) -> None:
    """Walk through recent transactions and cover or tag each one."""

    settings = _settings_or_exit(token, env, base_url, days, include_direct_debits)
    raise typer.Exit(cmd_reconcile(settings))


@app.command("accounts")
def accounts_cmd(
    *,
    token: str | None = TOKEN_OPTION,
    env: str | None = ENV_OPTION,
    base_url: str | None = BASE_URL_OPTION,
) -> None:
    """List the accounts visible to the access token."""

    settings = _settings_or_exit(token, env, base_url, None, False)
    raise typer.Exit(cmd_accounts(settings))


@app.command("transactions")
def transactions_cmd(
    *,
    account_uid: str = ACCOUNT_UID_OPTION,
    token: str | None = TOKEN_OPTION,
    env: str | None = ENV_OPTION,
    base_url: str | None = BASE_URL_OPTION,
    days: int | None = DAYS_OPTION,
    include_direct_debits: bool = INCLUDE_DD_OPTION,
) -> None:
    """List transactions still awaiting reconciliation."""

    settings = _settings_or_exit(token, env, base_url, days, include_direct_debits)
    raise typer.Exit(cmd_transactions(settings, account_uid))


@app.command("spaces")
def spaces_cmd(
    *,
    account_uid: str = ACCOUNT_UID_OPTION,
    feed_item_uid: str | None = typer.Option(
        None, "--feed-item-uid", help="Flag each space against this transaction."
    ),
    token: str | None = TOKEN_OPTION,
    env: str | None = ENV_OPTION,
    base_url: str | None = BASE_URL_OPTION,
    days: int | None = DAYS_OPTION,
    include_direct_debits: bool = INCLUDE_DD_OPTION,
) -> None:
    """List the account's spaces and whether each can cover a transaction."""

    settings = _settings_or_exit(token, env, base_url, days, include_direct_debits)
    raise typer.Exit(cmd_spaces(settings, account_uid, feed_item_uid))


@app.callback(invoke_without_command=True)
def _root(
    ctx: typer.Context,
    *,
    log_level: str | None = typer.Option(
        None, "--log-level", help="Logging level (falls back to PLUTUS_LOG_LEVEL, then WARNING)."
    ),
) -> None:
    """Root command.

    Loads ``.env`` from the current working directory (without overriding any
    already-set environment variables) and configures logging before any
    subcommand runs.
    """

    # Load environment from .env in CWD (override=False to keep existing env)
    load_dotenv(dotenv_path=Path.cwd() / ".env", override=False)

    # Central logging setup so child loggers inherit configuration
    configure_logging(log_level)

    if ctx.invoked_subcommand is None:
        typer.echo("No subcommand provided. Use --help to see available commands.")
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover
    # Running as a module: `python -m plutus.cli`
    app()
