"""Pytest configuration for test isolation.

Settings are read from ``STARLING_*`` / ``PLUTUS_*`` environment variables,
and the CLI additionally loads a ``.env`` from the current working directory.
A developer's real token or a local ``.env`` must never leak into a test run,
so every test starts with those variables cleared and the working directory
pointed at its own temporary directory.
"""

from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

_PREFIXES = ("PLUTUS_", "STARLING_")

# Make sure the workspace `packages/` dir is on sys.path so `plutus` is importable,
# and the repo root so `tests.helpers` resolves.
_ROOT = Path(__file__).resolve().parents[1]
_PKG_DIR = _ROOT / "packages"
sys.path[:0] = [p for p in [str(_PKG_DIR), str(_ROOT)] if p not in sys.path]


def _plutus_vars() -> list[str]:
    return [name for name in os.environ if name.startswith(_PREFIXES)]


@pytest.fixture(autouse=True)
def _isolate_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Clear plutus-related env vars and run from an empty temp directory.

    Variables a test loads itself (the CLI reads `.env`) are dropped again
    afterwards.
    """

    for name in _plutus_vars():
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    yield
    for name in _plutus_vars():
        os.environ.pop(name, None)
