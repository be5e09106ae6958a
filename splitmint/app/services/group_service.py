"""
services/group_service.py — Group and participant (roster) business logic.

Owns the participant-removal cascade. When a participant leaves a group:
  (a) every expense they paid is deleted outright (not reassigned);
  (b) their split is dropped from every other expense;
  (c) an expense left with no splits is deleted;
  (d) an EQUAL expense is re-divided evenly among the remaining splits:
      total / remaining count at cent precision. The cent-remainder
      distribution of split_service.compute_equal_split is NOT re-run, so
      the re-divided splits can miss the total by a cent.
(a) and (d) are product decisions still awaiting sign-off; see DESIGN.md.

Layer rules:
  - No Flask imports. The per-group participant limit is passed in by
    the route.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from splitmint.app.errors import AppError, ErrorCode
from splitmint.app.models.expense import Expense, SplitType
from splitmint.app.models.group import Group
from splitmint.app.models.participant import Participant

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


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


def _get_participant_or_404(
        group_id: int,
        participant_id: int,
        session: Session,
) -> Participant:
    """Returns the participant if it belongs to group_id, else PARTICIPANT_NOT_FOUND (404)."""
    participant = session.get(Participant, participant_id)
    if participant is None or participant.group_id != group_id:
        raise AppError(
            ErrorCode.PARTICIPANT_NOT_FOUND,
            f"Participant {participant_id} is not a member of group {group_id}.",
            404,
        )
    return participant


def _serialize_participant(participant: Participant) -> dict:
    return {
        "id": participant.id,
        "group_id": participant.group_id,
        "name": participant.name,
    }


def _build_group_dict(group: Group, participants: list[Participant]) -> dict:
    """Serialises a Group with its participant list to a plain dict."""
    return {
        "id": group.id,
        "name": group.name,
        "created_at": group.created_at.isoformat() if group.created_at else None,
        "participants": [_serialize_participant(p) for p in participants],
    }


def _redivide_evenly(expense: Expense, remaining_splits: list) -> None:
    """Sets every remaining split to expense.amount / len(remaining_splits)."""
    share = (expense.amount / Decimal(len(remaining_splits))).quantize(
        CENT, rounding=ROUND_HALF_UP
    )
    for split in remaining_splits:
        split.amount = share


def _cascade_participant_removal(
        expenses: list[Expense],
        participant_id: int,
        session: Session,
) -> dict:
    """
    Applies rules (a)–(d) to `expenses` on behalf of a leaving participant.

    Returns counts of what happened, for logging and the API response.
    """
    deleted = 0
    updated = 0

    for expense in expenses:
        # (a) expenses the participant paid for go away entirely
        if expense.paid_by_participant_id == participant_id:
            session.delete(expense)
            deleted += 1
            continue

        remaining = [s for s in expense.splits if s.participant_id != participant_id]
        if len(remaining) == len(expense.splits):
            continue

        # (c) nobody left to carry the cost
        if not remaining:
            session.delete(expense)
            deleted += 1
            continue

        # (d) equal splits are re-divided; exact/percentage keep their amounts
        if expense.split_type == SplitType.EQUAL:
            _redivide_evenly(expense, remaining)

        # (b) the orphaned split row is removed by the delete-orphan cascade
        expense.splits = remaining
        updated += 1

    return {"expenses_deleted": deleted, "expenses_updated": updated}


# ── Public service functions ───────────────────────────────────────────────

def create_group(
        name: str,
        session: Session,
        participant_names: list[str] | None = None,
        max_participants: int | None = None,
) -> dict:
    """
    Creates a new group, optionally seeded with participants.

    Args:
        name:              Group name (validated by schema — non-empty, max 100 chars).
        participant_names: Initial roster, in order.
        max_participants:  Per-group limit; None means unlimited.

    Raises:
      AppError(GROUP_FULL, 422) — more initial participants than the limit
    """
    participant_names = participant_names or []
    if max_participants is not None and len(participant_names) > max_participants:
        raise AppError(
            ErrorCode.GROUP_FULL,
            f"A group can have at most {max_participants} participants.",
            422,
            field="participants",
        )

    group = Group(name=name)
    session.add(group)
    session.flush()  # populate group.id before creating participants

    participants = []
    for participant_name in participant_names:
        participant = Participant(group_id=group.id, name=participant_name)
        session.add(participant)
        participants.append(participant)
    session.flush()

    session.refresh(group)
    return _build_group_dict(group, participants)


def list_groups(session: Session) -> list[dict]:
    """
    Returns all groups ordered by creation, each with its participant count
    and total spend (the dashboard summary).
    """
    participant_counts = dict(
        session.execute(
            select(Participant.group_id, func.count(Participant.id))
            .group_by(Participant.group_id)
        ).all()
    )
    totals = dict(
        session.execute(
            select(Expense.group_id, func.sum(Expense.amount))
            .group_by(Expense.group_id)
        ).all()
    )

    groups = session.execute(
        select(Group).order_by(Group.created_at.asc(), Group.id.asc())
    ).scalars().all()

    return [
        {
            "id": g.id,
            "name": g.name,
            "created_at": g.created_at.isoformat() if g.created_at else None,
            "participant_count": participant_counts.get(g.id, 0),
            "total_spent": Decimal(str(totals.get(g.id) or 0)).quantize(CENT),
        }
        for g in groups
    ]


def get_group(group_id: int, session: Session) -> dict:
    """Returns full group details including the current participant list."""
    group = _get_group_or_404(group_id, session)

    stmt = (
        select(Participant)
        .where(Participant.group_id == group_id)
        .order_by(Participant.id.asc())
    )
    participants = list(session.execute(stmt).scalars().all())

    return _build_group_dict(group, participants)


def rename_group(group_id: int, name: str, session: Session) -> dict:
    """Renames a group and returns its updated details."""
    group = _get_group_or_404(group_id, session)
    group.name = name
    session.flush()
    return get_group(group_id, session)


def delete_group(group_id: int, session: Session) -> dict:
    """
    Deletes a group with all of its participants, expenses and splits.

    Returns counts of what was removed.
    """
    group = _get_group_or_404(group_id, session)

    removed = {
        "participants_deleted": len(group.participants),
        "expenses_deleted": len(group.expenses),
    }
    session.delete(group)
    session.flush()

    logger.info(
        "Deleted group %s with %d participant(s) and %d expense(s)",
        group_id,
        removed["participants_deleted"],
        removed["expenses_deleted"],
    )
    return removed


def add_participant(
        group_id: int,
        name: str,
        session: Session,
        max_participants: int,
) -> dict:
    """
    Adds a named participant to a group.

    Raises:
      AppError(GROUP_NOT_FOUND, 404) — group does not exist
      AppError(GROUP_FULL, 422)      — group already holds max_participants
    """
    _get_group_or_404(group_id, session)

    current = session.execute(
        select(func.count(Participant.id)).where(Participant.group_id == group_id)
    ).scalar_one()

    if current >= max_participants:
        raise AppError(
            ErrorCode.GROUP_FULL,
            f"Group {group_id} already has the maximum of {max_participants} participants.",
            422,
        )

    participant = Participant(group_id=group_id, name=name)
    session.add(participant)
    session.flush()

    return _serialize_participant(participant)


def rename_participant(
        group_id: int,
        participant_id: int,
        name: str,
        session: Session,
) -> dict:
    """Changes a participant's display name."""
    _get_group_or_404(group_id, session)
    participant = _get_participant_or_404(group_id, participant_id, session)
    participant.name = name
    session.flush()
    return _serialize_participant(participant)


def remove_participant(
        group_id: int,
        participant_id: int,
        session: Session,
) -> dict:
    """
    Removes a participant and cascades the removal through the group's
    expenses (see module docstring, rules (a)–(d)).

    Raises:
      AppError(GROUP_NOT_FOUND, 404)       — group does not exist
      AppError(PARTICIPANT_NOT_FOUND, 404) — participant not in this group

    Returns:
      {"expenses_deleted": int, "expenses_updated": int}
    """
    _get_group_or_404(group_id, session)
    participant = _get_participant_or_404(group_id, participant_id, session)

    expenses = list(
        session.execute(
            select(Expense)
            .where(Expense.group_id == group_id)
            .options(selectinload(Expense.splits))
        ).scalars().all()
    )

    summary = _cascade_participant_removal(expenses, participant_id, session)
    session.flush()

    session.delete(participant)
    session.flush()

    logger.info(
        "Removed participant %s from group %s: %d expense(s) deleted, %d re-split",
        participant_id,
        group_id,
        summary["expenses_deleted"],
        summary["expenses_updated"],
    )
    return summary
