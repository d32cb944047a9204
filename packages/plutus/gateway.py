"""Ledger gateway: the contract the workflow consumes plus a Starling client.

:class:`LedgerGateway` is the narrow, synchronous interface the
reconciliation workflow depends on. :class:`StarlingGateway` implements it on
top of the Starling Bank public API (v2) using ``httpx``.

Every failure (non-2xx status, transport error, unparseable payload) surfaces
as a single :class:`~plutus.errors.LedgerError` carrying the status code and
response body; callers do not interpret status codes beyond success/failure.
This client performs no retries: the withdraw endpoint is not idempotent and
repeating it risks a double withdrawal.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Protocol, Self
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from .config import DEFAULT_TIMEOUT_SECONDS, Settings
from .errors import LedgerError
from .logging_setup import get_logger
from .models import (
    Account,
    AccountsResponse,
    FeedItemsResponse,
    Money,
    SavingsGoal,
    SpacesResponse,
    Transaction,
)

logger = get_logger("plutus.gateway")


class LedgerGateway(Protocol):
    """Read and write operations against the remote ledger."""

    def list_accounts(self) -> list[Account]: ...

    def list_transactions(
        self, account_uid: str, *, since: datetime, until: datetime
    ) -> list[Transaction]: ...

    def list_spaces(self, account_uid: str) -> list[SavingsGoal]: ...

    def annotate_transaction(
        self, account_uid: str, category_uid: str, feed_item_uid: str, note: str
    ) -> None: ...

    def withdraw_from_space(
        self, account_uid: str, savings_goal_uid: str, feed_item_uid: str, amount: Money
    ) -> None: ...


def format_timestamp(value: datetime) -> str:
    """Render ``value`` as ISO-8601 UTC with milliseconds and a ``Z`` suffix.

    Naive datetimes are taken to be UTC already.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _seg(value: str) -> str:
    # Identifiers are UUIDs in practice; quote anyway so a stray '/' can't
    # redirect the call to a different endpoint.
    return quote(value, safe="")


class StarlingGateway:
    """``httpx``-based client for the Starling Bank API v2.

    Parameters
    ----------
    access_token:
        Bearer credential sent with every request.
    base_url:
        API origin (e.g. ``https://api-sandbox.starlingbank.com``); the
        ``/api`` prefix is added here.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional ``httpx`` transport, mainly for tests
        (``httpx.MockTransport``).
    """

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        if not access_token:
            raise ValueError("access_token is required")
        self._client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/api",
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings, *, transport: httpx.BaseTransport | None = None) -> Self:
        return cls(
            settings.access_token,
            base_url=settings.api_base_url,
            timeout=settings.timeout_seconds,
            transport=transport,
        )

    # ---- lifecycle -----------------------------------------------------------

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ---- transport helpers ---------------------------------------------------

    def _request(
        self,
        method: str,
        endpoint: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        logger.debug("%s %s", method, endpoint)
        try:
            response = self._client.request(method, endpoint, params=params, json=json)
        except httpx.HTTPError as e:
            raise LedgerError(f"API request failed: {endpoint} - {e}", endpoint=endpoint) from e

        if response.is_error:
            body = response.text or "Unknown error"
            logger.debug("%s %s -> %s", method, endpoint, response.status_code)
            raise LedgerError(
                f"API request failed ({response.status_code}): {endpoint} - {body}",
                status_code=response.status_code,
                body=body,
                endpoint=endpoint,
            )
        logger.debug("%s %s -> %s", method, endpoint, response.status_code)
        return response

    def _get_model[M: BaseModel](
        self, endpoint: str, model: type[M], *, params: dict[str, str] | None = None
    ) -> M:
        response = self._request("GET", endpoint, params=params)
        try:
            return model.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            # json.JSONDecodeError is a ValueError
            raise LedgerError(
                f"Unexpected response from {endpoint}: {e}",
                status_code=response.status_code,
                body=response.text,
                endpoint=endpoint,
            ) from e

    # ---- reads ---------------------------------------------------------------

    def list_accounts(self) -> list[Account]:
        return self._get_model("/v2/accounts", AccountsResponse).accounts

    def list_transactions(
        self, account_uid: str, *, since: datetime, until: datetime
    ) -> list[Transaction]:
        endpoint = f"/v2/feed/account/{_seg(account_uid)}/settled-transactions-between"
        params = {
            "minTransactionTimestamp": format_timestamp(since),
            "maxTransactionTimestamp": format_timestamp(until),
        }
        return self._get_model(endpoint, FeedItemsResponse, params=params).feed_items

    def list_spaces(self, account_uid: str) -> list[SavingsGoal]:
        endpoint = f"/v2/account/{_seg(account_uid)}/spaces"
        return self._get_model(endpoint, SpacesResponse).savings_goals

    # ---- writes --------------------------------------------------------------

    def annotate_transaction(
        self, account_uid: str, category_uid: str, feed_item_uid: str, note: str
    ) -> None:
        endpoint = (
            f"/v2/feed/account/{_seg(account_uid)}/category/{_seg(category_uid)}"
            f"/{_seg(feed_item_uid)}/user-note"
        )
        self._request("PUT", endpoint, json={"userNote": note})

    def withdraw_from_space(
        self, account_uid: str, savings_goal_uid: str, feed_item_uid: str, amount: Money
    ) -> None:
        endpoint = (
            f"/v2/account/{_seg(account_uid)}/savings-goals/{_seg(savings_goal_uid)}"
            f"/withdraw-money/{_seg(feed_item_uid)}"
        )
        self._request("PUT", endpoint, json={"amount": amount.to_wire()})


__all__ = ["LedgerGateway", "StarlingGateway", "format_timestamp"]
