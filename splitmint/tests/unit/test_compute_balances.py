"""
tests/unit/test_compute_balances.py — Unit tests for balance_service.calculate_net_balances
                                      and get_balance_response.

What this file proves:
  - Payer is credited for the full expense amount they fronted
  - Each split participant is debited their split portion
  - A payer who is also in the splits gets both adjustments
  - Every roster participant appears in the result even if their balance is zero
  - Balance sum is zero for consistent data
  - Balances come from the expenses as they are now: a deleted expense simply
    is not in the list and contributes nothing
  - get_balance_response() attaches names, totals and settlements

Unit test constraints:
  - No database. DB-querying helpers are patched via unittest.mock or
    replaced with SimpleNamespace records.
  - No Flask application context.
"""

from __future__ import annotations

from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

from splitmint.app.services.balance_service import (
    calculate_net_balances,
    get_balance_response,
)


# ── Record factory helpers ─────────────────────────────────────────────────
# Lightweight stand-ins exposing the attributes calculate_net_balances reads.

def _split(participant_id, amount: str) -> SimpleNamespace:
    return SimpleNamespace(participant_id=participant_id, amount=Decimal(amount))


def _expense(paid_by, amount: str, splits: list) -> SimpleNamespace:
    return SimpleNamespace(
        paid_by_participant_id=paid_by,
        amount=Decimal(amount),
        splits=splits,
    )


# ── calculate_net_balances ─────────────────────────────────────────────────

def test_payer_credited_split_participants_debited():
    """
    Alice pays $100, split $60 Alice / $40 Bob.
    Alice net = +100 - 60 = +40.  Bob net = -40.  Sum = 0.
    """
    expenses = [_expense(1, "100.00", [_split(1, "60.00"), _split(2, "40.00")])]

    result = calculate_net_balances(expenses, [1, 2])

    assert result[1] == Decimal("40.00"), "Alice should be owed 40.00"
    assert result[2] == Decimal("-40.00"), "Bob should owe 40.00"
    assert sum(result.values()) == Decimal("0.00")


def test_three_way_equal_scenario():
    """A pays 100 split [33.34, 33.33, 33.33] → +66.66, -33.33, -33.33."""
    expenses = [_expense("A", "100", [
        _split("A", "33.34"), _split("B", "33.33"), _split("C", "33.33"),
    ])]

    result = calculate_net_balances(expenses, ["A", "B", "C"])

    assert result == {
        "A": Decimal("66.66"),
        "B": Decimal("-33.33"),
        "C": Decimal("-33.33"),
    }


def test_payer_outside_splits_gets_full_credit():
    expenses = [_expense(1, "50.00", [_split(2, "25.00"), _split(3, "25.00")])]

    result = calculate_net_balances(expenses, [1, 2, 3])

    assert result[1] == Decimal("50.00")


def test_balance_sum_zero_multiple_payers():
    """Alice pays $90 (split 3 ways), Bob pays $60 (split 2 ways)."""
    expenses = [
        _expense(1, "90.00", [_split(1, "30.00"), _split(2, "30.00"), _split(3, "30.00")]),
        _expense(2, "60.00", [_split(1, "30.00"), _split(2, "30.00")]),
    ]

    result = calculate_net_balances(expenses, [1, 2, 3])

    assert result == {1: Decimal("30.00"), 2: Decimal("0.00"), 3: Decimal("-30.00")}
    assert sum(result.values(), Decimal("0.00")) == Decimal("0.00")


def test_zero_balance_participant_appears_in_result():
    """Carol has no expenses and no splits — she still appears with 0.00."""
    expenses = [_expense(1, "100.00", [_split(1, "50.00"), _split(2, "50.00")])]

    result = calculate_net_balances(expenses, [1, 2, 3])

    assert 3 in result
    assert result[3] == Decimal("0.00")


def test_no_expenses_all_zero():
    result = calculate_net_balances([], [1, 2, 3])

    assert result == {1: Decimal("0.00"), 2: Decimal("0.00"), 3: Decimal("0.00")}


def test_empty_roster_and_no_expenses():
    assert calculate_net_balances([], []) == {}


def test_deleted_expense_no_longer_counts():
    """Recomputing without an expense removes its effect entirely."""
    lunch = _expense(1, "30.00", [_split(1, "15.00"), _split(2, "15.00")])
    taxi = _expense(2, "20.00", [_split(1, "10.00"), _split(2, "10.00")])

    before = calculate_net_balances([lunch, taxi], [1, 2])
    after = calculate_net_balances([taxi], [1, 2])

    assert before == {1: Decimal("5.00"), 2: Decimal("-5.00")}
    assert after == {1: Decimal("-10.00"), 2: Decimal("10.00")}


def test_balances_are_not_rounded():
    expenses = [_expense(1, "10.00", [_split(1, "3.333"), _split(2, "6.667")])]

    result = calculate_net_balances(expenses, [1, 2])

    assert result[1] == Decimal("6.667")
    assert result[2] == Decimal("-6.667")


# ── get_balance_response ───────────────────────────────────────────────────

_PATCH_BASE = "splitmint.app.services.balance_service"
_PATCH_PARTICIPANTS = f"{_PATCH_BASE}.get_participants"
_PATCH_EXPENSES = f"{_PATCH_BASE}.get_group_expenses"


@patch(_PATCH_EXPENSES)
@patch(_PATCH_PARTICIPANTS)
def test_balance_response_loads_roster_and_expenses_once(mock_participants, mock_expenses):
    mock_participants.return_value = [
        SimpleNamespace(id=1, name="Alice"),
        SimpleNamespace(id=2, name="Bob"),
    ]
    mock_expenses.return_value = [
        _expense(1, "100.00", [_split(1, "50.00"), _split(2, "50.00")]),
    ]

    result = get_balance_response(group_id=7, session=MagicMock())

    assert [row["balance"] for row in result["balances"]] == [
        Decimal("50.00"),
        Decimal("-50.00"),
    ]
    mock_participants.assert_called_once()
    mock_expenses.assert_called_once()


@patch(_PATCH_EXPENSES)
@patch(_PATCH_PARTICIPANTS)
def test_balance_response_shape(mock_participants, mock_expenses):
    mock_participants.return_value = [
        SimpleNamespace(id=1, name="Alice"),
        SimpleNamespace(id=2, name="Bob"),
        SimpleNamespace(id=3, name="Carol"),
    ]
    mock_expenses.return_value = [
        _expense(1, "100", [_split(1, "33.34"), _split(2, "33.33"), _split(3, "33.33")]),
    ]
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=5, name="Trip")

    result = get_balance_response(group_id=5, session=session)

    assert result["group_id"] == 5
    assert result["total_spent"] == Decimal("100")
    assert result["balance_sum"] == Decimal("0.00")
    assert result["is_settled"] is False
    assert result["balances"][0] == {
        "participant_id": 1,
        "name": "Alice",
        "balance": Decimal("66.66"),
        "total_paid": Decimal("100"),
        "total_owed": Decimal("33.34"),
    }
    assert result["balances"][2]["total_paid"] == Decimal("0.00")
    assert result["settlements"] == [
        {
            "from_participant_id": 2,
            "from_name": "Bob",
            "to_participant_id": 1,
            "to_name": "Alice",
            "amount": Decimal("33.33"),
        },
        {
            "from_participant_id": 3,
            "from_name": "Carol",
            "to_participant_id": 1,
            "to_name": "Alice",
            "amount": Decimal("33.33"),
        },
    ]


@patch(_PATCH_EXPENSES)
@patch(_PATCH_PARTICIPANTS)
def test_balance_response_for_settled_group(mock_participants, mock_expenses):
    mock_participants.return_value = [SimpleNamespace(id=1, name="Alice")]
    mock_expenses.return_value = []
    session = MagicMock()

    result = get_balance_response(group_id=1, session=session)

    assert result["settlements"] == []
    assert result["is_settled"] is True
    assert result["total_spent"] == Decimal("0.00")
