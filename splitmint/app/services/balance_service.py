"""
services/balance_service.py — Balance Aggregator.

This file is the SINGLE SOURCE OF TRUTH for how net balances are computed.
Any change to how balances work must be made here.

Two layers live in this module:
  - calculate_net_balances() is pure: it takes expense records and a roster
    and returns {participant_id: Decimal}. No session, no logging.
  - The data access helpers and get_balance_response() load a group's
    records through a SQLAlchemy Session and feed them to the pure function.

Balances are never stored. They are recomputed from every expense of the
group on each request.
"""

from __future__ import annotations

from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from splitmint.app.errors import AppError, ErrorCode
from splitmint.app.models.expense import Expense
from splitmint.app.models.group import Group
from splitmint.app.models.participant import Participant
from splitmint.app.services.settlement_service import suggest_settlements

ZERO = Decimal("0.00")


# ── Core algorithm ─────────────────────────────────────────────────────────

def calculate_net_balances(
        expenses: Iterable,
        participant_ids: Iterable,
) -> dict:
    """
    Net balance (paid minus owed) per participant.

    Args:
        expenses:        Records exposing paid_by_participant_id, amount and
                         splits (each split exposing participant_id, amount).
                         ORM Expense rows qualify.
        participant_ids: The group's current roster.

    Algorithm:
      1. Every roster participant starts at zero, so people with no
         expenses still appear.
      2. Each payer is credited the full expense amount.
      3. Each split participant is debited their split amount. A payer who
         is also in the splits gets both adjustments.

    No rounding is applied; that is left to the settlement optimizer and to
    display.
    """
    balances: dict = {participant_id: ZERO for participant_id in participant_ids}

    for expense in expenses:
        payer = expense.paid_by_participant_id
        balances[payer] = balances.get(payer, ZERO) + expense.amount

        for split in expense.splits:
            balances[split.participant_id] = (
                balances.get(split.participant_id, ZERO) - split.amount
            )

    return balances


# ── Data access helpers ────────────────────────────────────────────────────

def get_group_or_404(group_id: int, session: Session) -> Group:
    """Returns the Group or raises GROUP_NOT_FOUND (404)."""
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def get_participants(group_id: int, session: Session) -> list[Participant]:
    """Returns the group's participants in the order they were added."""
    stmt = (
        select(Participant)
        .where(Participant.group_id == group_id)
        .order_by(Participant.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_group_expenses(group_id: int, session: Session) -> list[Expense]:
    """Returns every expense of a group with its splits eagerly loaded."""
    stmt = (
        select(Expense)
        .where(Expense.group_id == group_id)
        .options(selectinload(Expense.splits))
        .order_by(Expense.id.asc())
    )
    return list(session.execute(stmt).scalars().all())


def get_balance_response(group_id: int, session: Session) -> dict:
    """
    Builds the payload for GET /groups/:id/balances.

    Contains, per participant, the net balance plus what they paid and what
    they owe; the group's total spend; the suggested settlements; and the
    sum of all balances (zero for consistent data, give or take the cents
    dropped by an even re-split after a participant removal).

    Raises:
        AppError(GROUP_NOT_FOUND, 404) — group does not exist.
    """
    get_group_or_404(group_id, session)

    participants = get_participants(group_id, session)
    expenses = get_group_expenses(group_id, session)
    names = {p.id: p.name for p in participants}

    balances = calculate_net_balances(expenses, names.keys())

    paid: dict = defaultdict(Decimal)
    owed: dict = defaultdict(Decimal)
    for expense in expenses:
        paid[expense.paid_by_participant_id] += expense.amount
        for split in expense.splits:
            owed[split.participant_id] += split.amount

    balance_list = [
        {
            "participant_id": pid,
            "name": names.get(pid, f"participant_{pid}"),
            "balance": balance,
            "total_paid": paid.get(pid, ZERO),
            "total_owed": owed.get(pid, ZERO),
        }
        for pid, balance in balances.items()
    ]

    settlements = [
        {
            "from_participant_id": s["from_participant_id"],
            "from_name": names.get(s["from_participant_id"], f"participant_{s['from_participant_id']}"),
            "to_participant_id": s["to_participant_id"],
            "to_name": names.get(s["to_participant_id"], f"participant_{s['to_participant_id']}"),
            "amount": s["amount"],
        }
        for s in suggest_settlements(balances)
    ]

    balance_sum = sum(balances.values(), ZERO)

    return {
        "group_id": group_id,
        "balances": balance_list,
        "settlements": settlements,
        "total_spent": sum((e.amount for e in expenses), ZERO),
        "balance_sum": balance_sum,
        "is_settled": not settlements,
    }
