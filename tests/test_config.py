from __future__ import annotations

import pytest

from plutus.config import Settings, parse_bool


def test_defaults():
    s = Settings.from_env({})
    assert s.environment == "live"
    assert s.api_base_url == "https://api.starlingbank.com"
    assert s.days_to_fetch == 7
    assert s.exclude_direct_debits is True
    assert not s.has_token


def test_environment_variables_are_read():
    s = Settings.from_env(
        {
            "STARLING_ACCESS_TOKEN": " tok ",
            "PLUTUS_ENV": "DEV",
            "PLUTUS_DAYS_TO_FETCH": "14",
            "PLUTUS_INCLUDE_DIRECT_DEBITS": "yes",
            "PLUTUS_HTTP_TIMEOUT": "5",
        }
    )
    assert s.access_token == "tok"
    assert s.api_base_url == "https://api-sandbox.starlingbank.com"
    assert s.days_to_fetch == 14
    assert s.exclude_direct_debits is False
    assert s.timeout_seconds == 5.0


def test_overrides_win_and_none_overrides_are_ignored():
    env = {"STARLING_ACCESS_TOKEN": "from-env", "PLUTUS_DAYS_TO_FETCH": "3"}
    s = Settings.from_env(env, access_token="from-cli", days_to_fetch=None)
    assert s.access_token == "from-cli"
    assert s.days_to_fetch == 3


def test_base_url_override_is_trimmed():
    s = Settings.from_env({"PLUTUS_BASE_URL": "http://localhost:8080/"})
    assert s.api_base_url == "http://localhost:8080"


@pytest.mark.parametrize(
    "env",
    [
        {"PLUTUS_ENV": "staging"},
        {"PLUTUS_DAYS_TO_FETCH": "a week"},
        {"PLUTUS_DAYS_TO_FETCH": "0"},
        {"PLUTUS_INCLUDE_DIRECT_DEBITS": "maybe"},
        {"PLUTUS_HTTP_TIMEOUT": "-1"},
    ],
)
def test_invalid_values_raise_value_error(env):
    with pytest.raises(ValueError):
        Settings.from_env(env)


def test_days_must_be_a_real_integer():
    with pytest.raises(ValueError):
        Settings(days_to_fetch=True)


def test_repr_masks_token():
    s = Settings(access_token="super-secret")
    assert "super-secret" not in repr(s)
    assert s.with_token("  other ").access_token == "other"


def test_parse_bool():
    assert parse_bool(None, default=True) is True
    assert parse_bool("Off", default=True) is False
    assert parse_bool("1", default=False) is True
