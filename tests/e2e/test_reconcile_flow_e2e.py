from __future__ import annotations

import json
from collections.abc import Collection, Sequence
from typing import Any

import httpx
import pytest

from plutus.config import Settings
from plutus.gateway import StarlingGateway
from plutus.workflow import ReconciliationWorkflow
from plutus.workflows.reconcile_flow import run_reconcile_flow


class FakeStarling:
    """Just enough of the Starling v2 API to drive a session, in memory."""

    def __init__(self) -> None:
        self.account = {
            "accountUid": "acc-1",
            "accountType": "PRIMARY",
            "defaultCategory": "cat-default",
            "currency": "GBP",
            "createdAt": "2020-01-01T00:00:00.000Z",
            "name": "Main",
        }
        self.feed = [
            self._tx("tx-1", 1250, note=None, name="Coffee Shop", reference="Latte"),
            self._tx("tx-2", 480, note="Lunch", name="Deli", reference="Sandwich"),
            self._tx("tx-3", 9999, note=None, name="Employer", reference="Salary", direction="IN"),
        ]
        self.goals = {
            "sg-1": {"savingsGoalUid": "sg-1", "name": "Holiday", "totalSaved": self._gbp(5000)},
            "sg-2": {"savingsGoalUid": "sg-2", "name": "Rainy day", "totalSaved": self._gbp(500)},
        }
        self.writes: list[tuple[str, dict[str, Any]]] = []
        self.fail_notes = 0

    @staticmethod
    def _gbp(minor_units: int) -> dict[str, Any]:
        return {"currency": "GBP", "minorUnits": minor_units}

    def _tx(self, uid, minor_units, *, note, name, reference, direction="OUT") -> dict[str, Any]:
        return {
            "feedItemUid": uid,
            "categoryUid": "cat-default",
            "amount": self._gbp(minor_units),
            "sourceAmount": self._gbp(minor_units),
            "direction": direction,
            "transactionTime": "2026-10-18T09:30:00.000Z",
            "source": "MASTER_CARD",
            "status": "SETTLED",
            "counterPartyName": name,
            "reference": reference,
            "userNote": note,
        }

    def __call__(self, request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer e2e-token"
        parts = request.url.path.removeprefix("/api/v2/").split("/")
        if request.method == "GET":
            if parts == ["accounts"]:
                return httpx.Response(200, json={"accounts": [self.account]})
            if parts[:3] == ["feed", "account", "acc-1"]:
                return httpx.Response(200, json={"feedItems": self.feed})
            if parts == ["account", "acc-1", "spaces"]:
                return httpx.Response(200, json={"savingsGoals": list(self.goals.values())})
        if request.method == "PUT":
            body = json.loads(request.content)
            path = request.url.path
            if parts[-1] == "user-note":
                if self.fail_notes:
                    self.fail_notes -= 1
                    return httpx.Response(500, text="temporarily unavailable")
                self.writes.append((path, body))
                for tx in self.feed:
                    if tx["feedItemUid"] == parts[-2]:
                        tx["userNote"] = body["userNote"]
                return httpx.Response(200, json={})
            if parts[4:5] == ["withdraw-money"]:
                self.writes.append((path, body))
                goal = self.goals[parts[3]]
                goal["totalSaved"] = self._gbp(
                    goal["totalSaved"]["minorUnits"] - body["amount"]["minorUnits"]
                )
                return httpx.Response(200, json={"transferUid": "t-1", "success": True})
        return httpx.Response(404, text=f"no route for {request.method} {request.url.path}")


class ScriptedChooser:
    """Answers each prompt with the first label containing the next scripted text.

    A scripted ``None`` cancels the prompt, as Esc would.
    """

    def __init__(self, *answers: str | None) -> None:
        self.answers = list(answers)
        self.prompts: list[tuple[list[str], set[int]]] = []

    def __call__(
        self,
        labels: Sequence[str],
        *,
        message: str = "",
        disabled: Collection[int] = (),
        disabled_reason: str = "",
    ) -> int | None:
        self.prompts.append((list(labels), set(disabled)))
        wanted = self.answers.pop(0)
        if wanted is None:
            return None
        for i, label in enumerate(labels):
            if wanted in label:
                assert i not in disabled, f"scripted a disabled option: {label}"
                return i
        raise AssertionError(f"no option matching {wanted!r} in {labels}")


@pytest.fixture
def starling() -> FakeStarling:
    return FakeStarling()


def _workflow(starling: FakeStarling) -> ReconciliationWorkflow:
    settings = Settings(access_token="e2e-token", environment="dev")
    gateway = StarlingGateway.from_settings(settings, transport=httpx.MockTransport(starling))
    return ReconciliationWorkflow(gateway, settings)


def test_e2e_cover_one_payment_from_a_space_and_ignore_another(starling: FakeStarling):
    choose = ScriptedChooser(
        "Main",
        "Coffee Shop",
        "Categorize",
        "Holiday",
        "Deli",
        "Ignore",
        "Quit",
    )
    printed: list[str] = []

    summary = run_reconcile_flow(
        _workflow(starling),
        choose=choose,
        confirm_fn=lambda _q: True,
        print_fn=lambda *a, **_k: printed.append(" ".join(map(str, a))),
    )

    # Withdraw first, then tag; the ignored payment is only tagged.
    assert starling.writes == [
        (
            "/api/v2/account/acc-1/savings-goals/sg-1/withdraw-money/tx-1",
            {"amount": {"currency": "GBP", "minorUnits": 1250}},
        ),
        (
            "/api/v2/feed/account/acc-1/category/cat-default/tx-1/user-note",
            {"userNote": "transferred: true"},
        ),
        (
            "/api/v2/feed/account/acc-1/category/cat-default/tx-2/user-note",
            {"userNote": "Lunch | transferred: true"},
        ),
    ]
    assert starling.goals["sg-1"]["totalSaved"]["minorUnits"] == 3750

    # The space that cannot cover GBP 12.50 was offered but not selectable.
    space_labels, space_disabled = choose.prompts[3]
    assert space_labels[1].startswith("Rainy day") and "insufficient funds" in space_labels[1]
    assert space_disabled == {1}

    # The incoming payment was never offered; the last list had no transactions left.
    first_list, _ = choose.prompts[1]
    assert not any("Employer" in label for label in first_list)
    last_list, _ = choose.prompts[-1]
    assert last_list == ["Refresh transactions", "Switch account", "Reset", "Quit"]

    assert summary.transferred == 1
    assert summary.ignored == 1
    assert summary.errors == []
    assert "Moved GBP 12.50 from Holiday and tagged the transaction." in printed
    assert "Transaction tagged successfully!" in printed
    assert printed[-1] == "Done: 1 covered from spaces, 1 ignored, 0 error(s)."


def test_e2e_failed_tag_after_withdrawal_is_repaired_with_ignore(starling: FakeStarling):
    starling.fail_notes = 1
    choose = ScriptedChooser(
        "Main",
        "Coffee Shop",
        "Categorize",
        "Holiday",
        # After the failed tag the payment is still listed; only Ignore is allowed.
        "Coffee Shop",
        "Ignore",
        "Quit",
    )
    printed: list[str] = []

    summary = run_reconcile_flow(
        _workflow(starling),
        choose=choose,
        confirm_fn=lambda _q: True,
        print_fn=lambda *a, **_k: printed.append(" ".join(map(str, a))),
    )

    withdrawals = [w for w in starling.writes if "withdraw-money" in w[0]]
    assert len(withdrawals) == 1
    assert starling.writes[-1] == (
        "/api/v2/feed/account/acc-1/category/cat-default/tx-1/user-note",
        {"userNote": "transferred: true"},
    )
    action_labels, action_disabled = choose.prompts[5]
    assert action_labels[0].startswith("Categorize")
    assert action_disabled == {0}
    assert any(line.startswith("WARNING: GBP 12.50 was moved from Holiday") for line in printed)
    assert summary.transferred == 0
    assert summary.ignored == 1
    assert len(summary.errors) == 1
    assert not any(line.startswith("Still untagged") for line in printed)


def test_e2e_declining_the_confirmation_moves_no_money(starling: FakeStarling):
    choose = ScriptedChooser("Main", "Coffee Shop", "Categorize", "Holiday", "Quit")

    summary = run_reconcile_flow(
        _workflow(starling),
        choose=choose,
        confirm_fn=lambda _q: False,
        print_fn=lambda *a, **_k: None,
    )

    assert starling.writes == []
    assert summary.outcomes == []


def test_e2e_cancelling_an_account_switch_returns_to_the_transaction_list(starling: FakeStarling):
    choose = ScriptedChooser("Main", "Switch account", None, "Quit")

    summary = run_reconcile_flow(
        _workflow(starling),
        choose=choose,
        confirm_fn=lambda _q: True,
        print_fn=lambda *a, **_k: None,
    )

    assert [labels for labels, _ in choose.prompts][2] == ["Main (PRIMARY)"]
    back_at_list, _ = choose.prompts[3]
    assert any("Coffee Shop" in label for label in back_at_list)
    assert back_at_list[-1] == "Quit"
    assert choose.answers == []
    assert starling.writes == []
    assert summary.outcomes == []
