"""Session settings for ``plutus``.

:class:`Settings` is an explicit, immutable value passed to whichever
component drives the workflow. Nothing in the core reads the environment;
only :meth:`Settings.from_env` does, and the CLI calls it after loading a
local ``.env`` with ``python-dotenv``.

Environment variables
---------------------
``STARLING_ACCESS_TOKEN``
    Personal access token (bearer credential).
``PLUTUS_ENV``
    ``live`` (default) or ``dev`` (sandbox).
``PLUTUS_BASE_URL``
    Optional API base URL override (e.g. a local proxy).
``PLUTUS_DAYS_TO_FETCH``
    Size of the transaction window in days (default 7).
``PLUTUS_INCLUDE_DIRECT_DEBITS``
    ``1``/``true``/``yes`` to offer direct debits for reconciliation.
``PLUTUS_HTTP_TIMEOUT``
    Per-request timeout in seconds (default 30).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any, Literal

type Environment = Literal["live", "dev"]

ENVIRONMENTS: dict[str, str] = {
    "live": "https://api.starlingbank.com",
    "dev": "https://api-sandbox.starlingbank.com",
}

DEFAULT_DAYS_TO_FETCH = 7
DEFAULT_TIMEOUT_SECONDS = 30.0

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def parse_bool(value: str | None, *, default: bool) -> bool:
    if value is None:
        return default
    v = value.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise ValueError(f"expected a boolean flag (1/0, true/false, yes/no); got {value!r}")


@dataclass(frozen=True, slots=True)
class Settings:
    """Everything one reconciliation session needs to know up front."""

    access_token: str = ""
    environment: Environment = "live"
    base_url: str | None = None
    days_to_fetch: int = DEFAULT_DAYS_TO_FETCH
    exclude_direct_debits: bool = True
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        if self.environment not in ENVIRONMENTS:
            raise ValueError(
                f"environment must be one of {sorted(ENVIRONMENTS)}; got {self.environment!r}"
            )
        # Booleans are ints; disallow them explicitly.
        if (
            isinstance(self.days_to_fetch, bool)
            or not isinstance(self.days_to_fetch, int)
            or self.days_to_fetch <= 0
        ):
            raise ValueError("days_to_fetch must be a positive integer")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

    @property
    def api_base_url(self) -> str:
        return (self.base_url or ENVIRONMENTS[self.environment]).rstrip("/")

    @property
    def has_token(self) -> bool:
        return bool(self.access_token.strip())

    def with_token(self, access_token: str) -> Settings:
        return replace(self, access_token=access_token.strip())

    def __repr__(self) -> str:
        token = "***" if self.has_token else "''"
        return (
            f"Settings(access_token={token}, environment={self.environment!r}, "
            f"base_url={self.base_url!r}, days_to_fetch={self.days_to_fetch}, "
            f"exclude_direct_debits={self.exclude_direct_debits}, "
            f"timeout_seconds={self.timeout_seconds})"
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: Any) -> Settings:
        """Build settings from environment variables.

        Keyword ``overrides`` (typically CLI options) win over the
        environment; overrides passed as ``None`` are ignored so optional CLI
        flags can be forwarded unconditionally.
        """

        env = os.environ if environ is None else environ
        values: dict[str, Any] = {
            "access_token": env.get("STARLING_ACCESS_TOKEN", "").strip(),
            "environment": (env.get("PLUTUS_ENV") or "live").strip().lower(),
            "base_url": (env.get("PLUTUS_BASE_URL") or "").strip() or None,
        }

        raw_days = env.get("PLUTUS_DAYS_TO_FETCH")
        if raw_days:
            try:
                values["days_to_fetch"] = int(raw_days)
            except ValueError as e:
                raise ValueError(f"PLUTUS_DAYS_TO_FETCH must be an integer; got {raw_days!r}") from e

        include_dd = parse_bool(env.get("PLUTUS_INCLUDE_DIRECT_DEBITS"), default=False)
        values["exclude_direct_debits"] = not include_dd

        raw_timeout = env.get("PLUTUS_HTTP_TIMEOUT")
        if raw_timeout:
            try:
                values["timeout_seconds"] = float(raw_timeout)
            except ValueError as e:
                raise ValueError(f"PLUTUS_HTTP_TIMEOUT must be a number; got {raw_timeout!r}") from e

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


__all__ = [
    "Settings",
    "Environment",
    "ENVIRONMENTS",
    "DEFAULT_DAYS_TO_FETCH",
    "DEFAULT_TIMEOUT_SECONDS",
    "parse_bool",
]
