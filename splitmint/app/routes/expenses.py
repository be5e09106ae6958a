"""
routes/expenses.py — Expense and split route handlers.

Registered at url_prefix=/api/v1 (not /api/v1/expenses) because this blueprint
owns the group-scoped paths (/groups/:id/expenses), the expense-ID paths
(/expenses/:id), the activity feed and the split preview. Registering at
/api/v1/expenses would make the group-scoped paths unreachable.

Layer rules:
  - Parse, validate, call ONE service, commit, return envelope.
  - No business logic. No DB queries. No bare SQL.
  - _serialize_expense() is a pure data-shape helper — not business logic.

Endpoints:
  POST   /groups/:id/expenses   → 201  create expense
  GET    /groups/:id/expenses   → 200  list expenses, newest first
  GET    /expenses/:id          → 200  get expense + splits
  PUT    /expenses/:id          → 200  replace expense + splits
  DELETE /expenses/:id          → 200  delete expense
  GET    /activity              → 200  recent expenses across all groups (filterable) + stats
  POST   /splits/preview        → 200  compute splits without saving
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from splitmint.app.extensions import db
from splitmint.app.models.expense import Expense
from splitmint.app.schemas.expense_schema import (
    ActivityQuerySchema,
    ExpenseInputSchema,
    SplitRequestSchema,
)
from splitmint.app.services import expense_service

expenses_bp = Blueprint("expenses", __name__)


# ── Serialization helpers ──────────────────────────────────────────────────
# Pure data-shaping — no DB access, no logic. Amounts as strings.

def _serialize_split(split) -> dict:
    return {
        "id": split.id,
        "participant_id": split.participant_id,
        "participant_name": split.participant.name,
        "amount": str(split.amount),
        "percentage": str(split.percentage) if split.percentage is not None else None,
    }


def _serialize_expense(expense: Expense) -> dict:
    """Converts an Expense ORM object to a plain dict for JSON output."""
    return {
        "id": expense.id,
        "group_id": expense.group_id,
        "paid_by_participant_id": expense.paid_by_participant_id,
        "paid_by_name": expense.payer.name,
        "description": expense.description,
        "amount": str(expense.amount),                  # Decimal → string
        "split_type": expense.split_type.value,
        "expense_date": expense.expense_date.isoformat(),
        "created_at": expense.created_at.isoformat() if expense.created_at else None,
        "updated_at": expense.updated_at.isoformat() if expense.updated_at else None,
        "splits": [_serialize_split(s) for s in expense.splits],
    }


def _activity_limit(requested: int | None) -> int:
    """Applies the configured default and ceiling to ?limit=."""
    if requested is None:
        return current_app.config["ACTIVITY_FEED_LIMIT"]
    return min(requested, current_app.config["ACTIVITY_FEED_MAX_LIMIT"])


# ── Group-scoped expense routes ────────────────────────────────────────────

@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["POST"])
def create_expense(group_id: int):
    """POST /groups/:id/expenses — Record a new expense with its splits."""
    data = ExpenseInputSchema().load(request.get_json(force=True) or {})
    expense = expense_service.create_expense(
        group_id=group_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 201


@expenses_bp.route("/groups/<int:group_id>/expenses", methods=["GET"])
def list_expenses(group_id: int):
    """GET /groups/:id/expenses — List a group's expenses, newest first."""
    expenses = expense_service.list_expenses(group_id=group_id, session=db.session)
    return jsonify({
        "data": [_serialize_expense(e) for e in expenses],
        "warnings": [],
    }), 200


# ── Expense-ID routes ──────────────────────────────────────────────────────

@expenses_bp.route("/expenses/<int:expense_id>", methods=["GET"])
def get_expense(expense_id: int):
    """GET /expenses/:id — Get expense detail including splits."""
    expense = expense_service.get_expense(expense_id=expense_id, session=db.session)
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 200


@expenses_bp.route("/expenses/<int:expense_id>", methods=["PUT"])
def update_expense(expense_id: int):
    """
    PUT /expenses/:id — Replace an expense.
    Splits are recomputed from the new payload; nothing changes on failure.
    """
    data = ExpenseInputSchema().load(request.get_json(force=True) or {})
    expense = expense_service.update_expense(
        expense_id=expense_id,
        data=data,
        session=db.session,
    )
    db.session.commit()
    return jsonify({"data": _serialize_expense(expense), "warnings": []}), 200


@expenses_bp.route("/expenses/<int:expense_id>", methods=["DELETE"])
def delete_expense(expense_id: int):
    """DELETE /expenses/:id — Delete an expense and its splits."""
    expense_service.delete_expense(expense_id=expense_id, session=db.session)
    db.session.commit()
    return jsonify({
        "data": {
            "deleted": True,
            "expense_id": expense_id,
        },
        "warnings": [],
    }), 200


# ── Cross-group routes ─────────────────────────────────────────────────────

@expenses_bp.route("/activity", methods=["GET"])
def list_activity():
    """
    GET /activity — Recent expenses across every group, plus summary stats.

    Optional filters (see ActivityQuerySchema): q, group_id, participant_id,
    date_from, date_to, min_amount, max_amount, limit.
    """
    filters = ActivityQuerySchema().load(request.args)
    expenses = expense_service.list_activity(
        session=db.session,
        limit=_activity_limit(filters.pop("limit")),
        filters=filters,
    )
    stats = expense_service.activity_stats(session=db.session)
    return jsonify({
        "data": {
            "expenses": [
                {**_serialize_expense(e), "group_name": e.group.name}
                for e in expenses
            ],
            "stats": stats,
        },
        "warnings": [],
    }), 200


@expenses_bp.route("/splits/preview", methods=["POST"])
def preview_splits():
    """POST /splits/preview — Run the split calculator without saving anything."""
    data = SplitRequestSchema().load(request.get_json(force=True) or {})
    allocations = expense_service.preview_splits(data)
    return jsonify({
        "data": {
            "amount": data["amount"],
            "split_type": data["split_type"].value,
            "splits": allocations,
        },
        "warnings": [],
    }), 200
