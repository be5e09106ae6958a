"""
services/settlement_service.py — Settlement Optimizer.

Greedy minimum cash flow: repeatedly match the largest remaining debtor with
the largest remaining creditor until one side runs out.

Layer rules:
  - Pure function of a {participant_id: balance} mapping. No Flask, no
    session, no logging.
  - Deterministic: equal amounts keep their input order (Python's sort is
    stable, including with reverse=True), so the same balances always yield
    the same list.

Guarantees for a balanced input (sum of balances ~ 0):
  - at most len(debtors) + len(creditors) - 1 transfers
  - the transfers add up to the total positive imbalance
  - applying every transfer brings every balance to within 0.01 of zero
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")

# Balances within this distance of zero count as settled.
THRESHOLD = Decimal("0.01")


def _round_cents(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def suggest_settlements(balances: dict) -> list[dict]:
    """
    Produces the transfers that settle `balances`.

    Args:
        balances: {participant_id: net_balance}. Positive = owed money,
                  negative = owes money. Any mapping order; the order only
                  matters for tie-breaking between equal amounts.

    Returns:
        [{"from_participant_id", "to_participant_id", "amount"}, ...] with
        amounts rounded to the cent. An empty list means everyone is settled.
    """
    debtors: list[list] = []
    creditors: list[list] = []

    for participant_id, balance in balances.items():
        rounded = _round_cents(balance)
        if rounded < -THRESHOLD:
            debtors.append([participant_id, -rounded])
        elif rounded > THRESHOLD:
            creditors.append([participant_id, rounded])

    debtors.sort(key=lambda entry: entry[1], reverse=True)
    creditors.sort(key=lambda entry: entry[1], reverse=True)

    settlements: list[dict] = []
    i = j = 0

    while i < len(debtors) and j < len(creditors):
        debtor = debtors[i]
        creditor = creditors[j]

        amount = min(debtor[1], creditor[1])
        if amount > 0:
            settlements.append({
                "from_participant_id": debtor[0],
                "to_participant_id": creditor[0],
                "amount": _round_cents(amount),
            })

        debtor[1] -= amount
        creditor[1] -= amount

        if debtor[1] < THRESHOLD:
            i += 1
        if creditor[1] < THRESHOLD:
            j += 1

    return settlements
