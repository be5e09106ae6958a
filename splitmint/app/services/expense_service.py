"""
services/expense_service.py — Expense business logic.

Rules enforced here (the schema cannot perform DB lookups):
  PAYER_NOT_MEMBER (422)             — paid_by_participant_id must belong to the group
  SPLIT_PARTICIPANT_NOT_MEMBER (422) — every split participant must belong to the group
  SPLIT_SUM_MISMATCH / PERCENTAGE_SUM_MISMATCH (422) — raised by split_service

Split computation is delegated to split_service.compute_splits(); this module
never rounds a share itself. An expense and its splits are always written in
the same flush, so a rejected request leaves nothing behind.

Layer rules:
  - No Flask imports. No current_app, request, g, or HTTP knowledge.
  - Receives plain ints and dicts; returns ORM objects or raises AppError.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, aliased, selectinload

from splitmint.app.errors import AppError, ErrorCode, InvalidInputError
from splitmint.app.models.expense import Expense, SplitType
from splitmint.app.models.group import Group
from splitmint.app.models.participant import Participant
from splitmint.app.models.split import Split
from splitmint.app.services import split_service


# ── Private helpers ────────────────────────────────────────────────────────

def _get_group_or_404(group_id: int, session: Session) -> Group:
    """Returns the Group or raises GROUP_NOT_FOUND (404)."""
    group = session.get(Group, group_id)
    if group is None:
        raise AppError(
            ErrorCode.GROUP_NOT_FOUND,
            f"Group {group_id} does not exist.",
            404,
        )
    return group


def _get_expense_or_404(expense_id: int, session: Session) -> Expense:
    """Returns the Expense or raises EXPENSE_NOT_FOUND (404)."""
    expense = session.get(Expense, expense_id)
    if expense is None:
        raise AppError(
            ErrorCode.EXPENSE_NOT_FOUND,
            f"Expense {expense_id} does not exist.",
            404,
        )
    return expense


def _get_participant_ids(group_id: int, session: Session) -> set[int]:
    """Returns the ids of the group's current participants."""
    stmt = select(Participant.id).where(Participant.group_id == group_id)
    return set(session.execute(stmt).scalars().all())


def _validate_payer_is_member(
        paid_by_participant_id: int,
        group_id: int,
        participant_ids: set[int],
) -> None:
    if paid_by_participant_id not in participant_ids:
        raise InvalidInputError(
            ErrorCode.PAYER_NOT_MEMBER,
            f"Participant {paid_by_participant_id} is not a member of group {group_id}.",
            field="paid_by_participant_id",
        )


def _requested_participant_ids(data: dict) -> list[int]:
    """The participant ids a request wants to split between, in input order."""
    if data.get("participant_ids") is not None:
        return list(data["participant_ids"])
    return [s["participant_id"] for s in data.get("splits") or []]


def _validate_split_participants_are_members(
        requested_ids: list[int],
        group_id: int,
        participant_ids: set[int],
) -> None:
    """Raises SPLIT_PARTICIPANT_NOT_MEMBER (422) for the first outsider."""
    for participant_id in requested_ids:
        if participant_id not in participant_ids:
            raise InvalidInputError(
                ErrorCode.SPLIT_PARTICIPANT_NOT_MEMBER,
                f"Participant {participant_id} is not a member of group {group_id}.",
                field="splits",
            )


def _compute(data: dict) -> list[dict]:
    return split_service.compute_splits(
        data["split_type"],
        data["amount"],
        participant_ids=data.get("participant_ids"),
        splits=data.get("splits"),
    )


def _build_split_rows(allocations: list[dict]) -> list[Split]:
    return [
        Split(
            participant_id=a["participant_id"],
            amount=a["amount"],
            percentage=a.get("percentage"),
        )
        for a in allocations
    ]


def _validate_against_group(data: dict, group_id: int, session: Session) -> list[dict]:
    """
    Runs every membership check for `data`, then the Split Calculator.

    Returns the computed allocations; nothing is written.
    """
    participant_ids = _get_participant_ids(group_id, session)
    _validate_payer_is_member(data["paid_by_participant_id"], group_id, participant_ids)
    _validate_split_participants_are_members(
        _requested_participant_ids(data), group_id, participant_ids
    )
    return _compute(data)


# ── Public service functions ───────────────────────────────────────────────

def create_expense(
        group_id: int,
        data: dict,
        session: Session,
) -> Expense:
    """
    Records a new expense for a group.

    Args:
        group_id: The group this expense belongs to.
        data:     Validated dict from ExpenseInputSchema.

    Raises:
      AppError(GROUP_NOT_FOUND, 404)
      InvalidInputError(PAYER_NOT_MEMBER / SPLIT_PARTICIPANT_NOT_MEMBER /
                        EMPTY_PARTICIPANTS / INVALID_AMOUNT, 422)
      SplitValidationError(SPLIT_SUM_MISMATCH / PERCENTAGE_SUM_MISMATCH, 422)

    Returns:
        The newly created Expense ORM object (with splits loaded).
    """
    _get_group_or_404(group_id, session)

    # Compute split data before writing the expense row.
    allocations = _validate_against_group(data, group_id, session)

    expense = Expense(
        group_id=group_id,
        paid_by_participant_id=data["paid_by_participant_id"],
        description=data["description"],
        amount=data["amount"],
        split_type=SplitType(data["split_type"]),
        expense_date=data.get("expense_date") or date.today(),
    )
    expense.splits = _build_split_rows(allocations)
    session.add(expense)
    session.flush()

    # Refresh to load server defaults so _serialize_expense() in the route works.
    session.refresh(expense)
    return expense


def list_expenses(group_id: int, session: Session) -> list[Expense]:
    """Returns every expense of a group, newest first."""
    _get_group_or_404(group_id, session)

    stmt = (
        select(Expense)
        .where(Expense.group_id == group_id)
        .options(selectinload(Expense.splits))
        .order_by(
            Expense.expense_date.desc(),
            Expense.created_at.desc(),
            Expense.id.desc(),
        )
    )
    return list(session.execute(stmt).scalars().all())


def get_expense(expense_id: int, session: Session) -> Expense:
    """Returns a single expense including its splits."""
    return _get_expense_or_404(expense_id, session)


def update_expense(
        expense_id: int,
        data: dict,
        session: Session,
) -> Expense:
    """
    Replaces an expense's details and splits.

    The request carries the full expense (same shape as create). Everything is
    validated and the new splits are computed before the stored row is
    touched, so a failed edit leaves the expense exactly as it was.
    updated_at is set on every successful edit.
    """
    expense = _get_expense_or_404(expense_id, session)

    allocations = _validate_against_group(data, expense.group_id, session)

    expense.description = data["description"]
    expense.amount = data["amount"]
    expense.paid_by_participant_id = data["paid_by_participant_id"]
    expense.split_type = SplitType(data["split_type"])
    if data.get("expense_date") is not None:
        expense.expense_date = data["expense_date"]

    # Old rows go first: (expense_id, participant_id) is unique.
    expense.splits.clear()
    session.flush()
    expense.splits.extend(_build_split_rows(allocations))

    expense.updated_at = datetime.now(timezone.utc)
    session.flush()
    session.refresh(expense)
    return expense


def delete_expense(expense_id: int, session: Session) -> None:
    """
    Deletes an expense and its splits. Balances stop reflecting it at once,
    since they are always recomputed from the remaining expenses.

    Raises:
        AppError(EXPENSE_NOT_FOUND, 404) — expense does not exist.
    """
    expense = _get_expense_or_404(expense_id, session)
    session.delete(expense)
    session.flush()


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _apply_activity_filters(stmt, filters: dict):
    """Narrows an activity SELECT by the optional ActivityQuerySchema filters."""
    search = filters.get("q")
    if search:
        payer = aliased(Participant)
        pattern = f"%{_escape_like(search)}%"
        stmt = (
            stmt.join(Group, Expense.group_id == Group.id)
            .join(payer, Expense.paid_by_participant_id == payer.id)
            .where(
                or_(
                    Expense.description.ilike(pattern, escape="\\"),
                    payer.name.ilike(pattern, escape="\\"),
                    Group.name.ilike(pattern, escape="\\"),
                )
            )
        )

    if filters.get("group_id") is not None:
        stmt = stmt.where(Expense.group_id == filters["group_id"])

    participant_id = filters.get("participant_id")
    if participant_id is not None:
        stmt = stmt.where(
            or_(
                Expense.paid_by_participant_id == participant_id,
                Expense.splits.any(Split.participant_id == participant_id),
            )
        )

    if filters.get("date_from") is not None:
        stmt = stmt.where(Expense.expense_date >= filters["date_from"])
    if filters.get("date_to") is not None:
        stmt = stmt.where(Expense.expense_date <= filters["date_to"])

    if filters.get("min_amount") is not None:
        stmt = stmt.where(Expense.amount >= filters["min_amount"])
    if filters.get("max_amount") is not None:
        stmt = stmt.where(Expense.amount <= filters["max_amount"])

    return stmt


def list_activity(session: Session, limit: int, filters: dict | None = None) -> list[Expense]:
    """
    Recent expenses across every group, newest first (the dashboard feed).

    Args:
        limit:   Maximum number of expenses; the route clamps it to the
                 configured maximum.
        filters: Validated dict from ActivityQuerySchema. Missing or None
                 entries do not filter.
    """
    stmt = _apply_activity_filters(select(Expense), filters or {})
    stmt = (
        stmt.options(selectinload(Expense.splits), selectinload(Expense.group))
        .order_by(
            Expense.expense_date.desc(),
            Expense.created_at.desc(),
            Expense.id.desc(),
        )
        .limit(limit)
    )
    return list(session.execute(stmt).scalars().all())


def _to_cents(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def activity_stats(session: Session, today: date | None = None) -> dict:
    """
    Summary cards for the activity feed, over every expense in every group.

    The feed filters do not apply here. "This month" is the calendar month
    containing `today` (defaults to the current date), judged by expense_date.

    Returns:
        {"total_count", "this_month_count", "this_month_total",
         "average_per_expense"}; amounts rounded half-up to the cent.
    """
    month_start = (today or date.today()).replace(day=1)
    if month_start.month == 12:
        next_month = month_start.replace(year=month_start.year + 1, month=1)
    else:
        next_month = month_start.replace(month=month_start.month + 1)

    total_count, total_amount = session.execute(
        select(func.count(Expense.id), func.sum(Expense.amount))
    ).one()
    month_count, month_amount = session.execute(
        select(func.count(Expense.id), func.sum(Expense.amount))
        .where(Expense.expense_date >= month_start, Expense.expense_date < next_month)
    ).one()

    average = Decimal(str(total_amount)) / total_count if total_count else None

    return {
        "total_count": total_count,
        "this_month_count": month_count,
        "this_month_total": _to_cents(month_amount),
        "average_per_expense": _to_cents(average),
    }


def preview_splits(data: dict) -> list[dict]:
    """
    Runs the Split Calculator on a request without touching the database.

    Used by clients to show the computed shares before an expense is saved.
    """
    return _compute(data)
