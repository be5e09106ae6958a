"""
Unit tests for group_service: the participant-removal cascade and the
branches that are lightly exercised by integration tests.

These tests run DB-free with mocked session/query behavior.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from splitmint.app.errors import AppError, ErrorCode
from splitmint.app.models.expense import SplitType
from splitmint.app.services import group_service


def _split(participant_id: int, amount: str) -> SimpleNamespace:
    return SimpleNamespace(participant_id=participant_id, amount=Decimal(amount))


def _expense(
        paid_by: int,
        amount: str,
        splits: list,
        split_type: SplitType = SplitType.EQUAL,
) -> SimpleNamespace:
    return SimpleNamespace(
        paid_by_participant_id=paid_by,
        amount=Decimal(amount),
        split_type=split_type,
        splits=splits,
    )


# ── Lookups ────────────────────────────────────────────────────────────────

def test_get_group_or_404_raises_when_group_missing():
    session = MagicMock()
    session.get.return_value = None

    with pytest.raises(AppError) as exc_info:
        group_service._get_group_or_404(group_id=404, session=session)

    err = exc_info.value
    assert err.code == ErrorCode.GROUP_NOT_FOUND
    assert err.http_status == 404


def test_get_participant_or_404_rejects_participant_of_other_group():
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=3, group_id=2, name="Dan")

    with pytest.raises(AppError) as exc_info:
        group_service._get_participant_or_404(group_id=1, participant_id=3, session=session)

    assert exc_info.value.code == ErrorCode.PARTICIPANT_NOT_FOUND
    assert exc_info.value.http_status == 404


def test_get_participant_or_404_returns_member():
    session = MagicMock()
    participant = SimpleNamespace(id=3, group_id=1, name="Dan")
    session.get.return_value = participant

    assert group_service._get_participant_or_404(1, 3, session) is participant


# ── Cascade rules ──────────────────────────────────────────────────────────

class TestParticipantRemovalCascade:
    """_cascade_participant_removal applies the four removal rules."""

    def test_expense_paid_by_leaving_participant_is_deleted(self):
        expense = _expense(1, "90.00", [_split(1, "30.00"), _split(2, "30.00"), _split(3, "30.00")])
        session = MagicMock()

        summary = group_service._cascade_participant_removal([expense], 1, session)

        session.delete.assert_called_once_with(expense)
        assert summary == {"expenses_deleted": 1, "expenses_updated": 0}

    def test_sole_payer_and_sole_split_deleted_once(self):
        expense = _expense(1, "10.00", [_split(1, "10.00")])
        session = MagicMock()

        summary = group_service._cascade_participant_removal([expense], 1, session)

        session.delete.assert_called_once_with(expense)
        assert summary["expenses_deleted"] == 1

    def test_equal_expense_is_redivided_among_the_rest(self):
        expense = _expense(1, "90.00", [_split(1, "30.00"), _split(2, "30.00"), _split(3, "30.00")])
        session = MagicMock()

        summary = group_service._cascade_participant_removal([expense], 3, session)

        assert [s.participant_id for s in expense.splits] == [1, 2]
        assert [s.amount for s in expense.splits] == [Decimal("45.00"), Decimal("45.00")]
        session.delete.assert_not_called()
        assert summary == {"expenses_deleted": 0, "expenses_updated": 1}

    def test_redivide_rounds_to_cents_without_remainder_distribution(self):
        """100 among the three who remain → 33.33 each, one cent short of the total."""
        expense = _expense(
            1, "100.00",
            [_split(1, "25.00"), _split(2, "25.00"), _split(3, "25.00"), _split(4, "25.00")],
        )

        group_service._cascade_participant_removal([expense], 4, MagicMock())

        assert [s.amount for s in expense.splits] == [Decimal("33.33")] * 3
        assert sum(s.amount for s in expense.splits) == Decimal("99.99")

    def test_exact_expense_keeps_remaining_amounts(self):
        expense = _expense(
            1, "100.00",
            [_split(1, "50.00"), _split(2, "30.00"), _split(3, "20.00")],
            split_type=SplitType.EXACT,
        )

        group_service._cascade_participant_removal([expense], 3, MagicMock())

        assert [(s.participant_id, s.amount) for s in expense.splits] == [
            (1, Decimal("50.00")),
            (2, Decimal("30.00")),
        ]

    def test_percentage_expense_keeps_remaining_amounts(self):
        expense = _expense(
            1, "100.00",
            [_split(1, "60.00"), _split(2, "40.00")],
            split_type=SplitType.PERCENTAGE,
        )

        group_service._cascade_participant_removal([expense], 2, MagicMock())

        assert [s.amount for s in expense.splits] == [Decimal("60.00")]

    def test_expense_left_without_splits_is_deleted(self):
        expense = _expense(1, "20.00", [_split(2, "20.00")], split_type=SplitType.EXACT)
        session = MagicMock()

        summary = group_service._cascade_participant_removal([expense], 2, session)

        session.delete.assert_called_once_with(expense)
        assert summary == {"expenses_deleted": 1, "expenses_updated": 0}

    def test_unrelated_expense_untouched(self):
        splits = [_split(1, "10.00"), _split(2, "10.00")]
        expense = _expense(1, "20.00", splits)
        session = MagicMock()

        summary = group_service._cascade_participant_removal([expense], 3, session)

        assert expense.splits is splits
        assert [s.amount for s in splits] == [Decimal("10.00"), Decimal("10.00")]
        session.delete.assert_not_called()
        assert summary == {"expenses_deleted": 0, "expenses_updated": 0}

    def test_mixed_group(self):
        paid_by_leaver = _expense(3, "30.00", [_split(1, "15.00"), _split(2, "15.00")])
        shared = _expense(1, "60.00", [_split(1, "20.00"), _split(2, "20.00"), _split(3, "20.00")])
        untouched = _expense(2, "8.00", [_split(1, "4.00"), _split(2, "4.00")])
        session = MagicMock()

        summary = group_service._cascade_participant_removal(
            [paid_by_leaver, shared, untouched], 3, session
        )

        session.delete.assert_called_once_with(paid_by_leaver)
        assert [s.amount for s in shared.splits] == [Decimal("30.00"), Decimal("30.00")]
        assert summary == {"expenses_deleted": 1, "expenses_updated": 1}


# ── Roster operations ──────────────────────────────────────────────────────

def test_add_participant_rejects_full_group():
    session = MagicMock()
    session.get.return_value = SimpleNamespace(id=1, name="Trip")
    session.execute.return_value.scalar_one.return_value = 4

    with pytest.raises(AppError) as exc_info:
        group_service.add_participant(1, "Eve", session, max_participants=4)

    assert exc_info.value.code == ErrorCode.GROUP_FULL
    assert exc_info.value.http_status == 422
    session.add.assert_not_called()


def test_create_group_rejects_too_many_initial_participants():
    session = MagicMock()

    with pytest.raises(AppError) as exc_info:
        group_service.create_group(
            "Trip",
            session,
            participant_names=["A", "B", "C", "D", "E"],
            max_participants=4,
        )

    assert exc_info.value.code == ErrorCode.GROUP_FULL
    assert exc_info.value.field == "participants"
    session.add.assert_not_called()


def test_list_groups_serializes_groups():
    session = MagicMock()
    ts1 = datetime(2026, 1, 1, tzinfo=timezone.utc)
    ts2 = datetime(2026, 1, 2, tzinfo=timezone.utc)
    rows = [
        SimpleNamespace(id=1, name="Trip", created_at=ts1),
        SimpleNamespace(id=2, name="Home", created_at=ts2),
    ]
    counts = MagicMock()
    counts.all.return_value = [(1, 3)]
    totals = MagicMock()
    totals.all.return_value = [(1, Decimal("120.5"))]
    groups = MagicMock()
    groups.scalars.return_value.all.return_value = rows
    session.execute.side_effect = [counts, totals, groups]

    result = group_service.list_groups(session=session)

    assert result == [
        {
            "id": 1,
            "name": "Trip",
            "created_at": ts1.isoformat(),
            "participant_count": 3,
            "total_spent": Decimal("120.50"),
        },
        {
            "id": 2,
            "name": "Home",
            "created_at": ts2.isoformat(),
            "participant_count": 0,
            "total_spent": Decimal("0.00"),
        },
    ]
