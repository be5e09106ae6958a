"""
routes/balances.py — Balance route handlers.

Layer rules:
  - Call ONE service, return envelope.
  - No business logic. No DB queries. No bare SQL.

Endpoints (base url_prefix=/api/v1/groups):
  GET /groups/:id/balances → 200  net balances + suggested settlements
"""

from __future__ import annotations

from flask import Blueprint, jsonify

from splitmint.app.extensions import db
from splitmint.app.services import balance_service

balances_bp = Blueprint("balances", __name__)


@balances_bp.route("/<int:group_id>/balances", methods=["GET"])
def get_balances(group_id: int):
    """
    GET /groups/:id/balances

    Balances are recomputed from every expense of the group on each call.
    Amounts (balance, total_paid, total_owed, settlement amounts, total_spent,
    balance_sum) are serialised as strings by DecimalJSONProvider.
    """
    result = balance_service.get_balance_response(
        group_id=group_id,
        session=db.session,
    )
    return jsonify({"data": result, "warnings": []}), 200
