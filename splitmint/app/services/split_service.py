"""
services/split_service.py — Split Calculator.

Turns a total amount plus a split rule into concrete per-participant
allocations, and guarantees the allocations add up to the total.

Layer rules:
  - Pure functions. No Flask, no SQLAlchemy session, no logging.
  - Input and output are plain lists of dicts keyed by participant_id.
  - Failures are raised, never returned: InvalidInputError for requests that
    cannot be computed, SplitValidationError for splits that do not add up.

Rounding policies (both are order-dependent, and tests rely on the order):
  - EQUAL:      every share is truncated to the cent; the leftover cents go
                one each to the FIRST participants in input order.
  - PERCENTAGE: every share but the last is rounded half-up to the cent; the
                LAST participant in input order takes whatever is left, so
                they absorb all of the rounding error. Reordering the input
                changes who absorbs it.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Iterable

from splitmint.app.errors import ErrorCode, InvalidInputError, SplitValidationError
from splitmint.app.models.expense import SplitType

CENT = Decimal("0.01")

# Absolute slack allowed when comparing sums (amounts and percentages).
TOLERANCE = Decimal("0.01")

HUNDRED = Decimal("100")


# ── Private helpers ────────────────────────────────────────────────────────

def _to_decimal(value) -> Decimal:
    """Coerces int/str/float/Decimal to Decimal. Floats go through str()."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def _require_positive_total(total: Decimal) -> None:
    if total <= 0:
        raise InvalidInputError(
            ErrorCode.INVALID_AMOUNT,
            f"Expense amount must be greater than zero (got {total}).",
            field="amount",
        )


def _require_participants(participant_ids: Iterable) -> None:
    if not participant_ids:
        raise InvalidInputError(
            ErrorCode.EMPTY_PARTICIPANTS,
            "At least one participant is required to split an expense.",
            field="participant_ids",
        )


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, Decimal("0.00"))


# ── Public API ─────────────────────────────────────────────────────────────

def compute_equal_split(total_amount, participant_ids: list) -> list[dict]:
    """
    Divides total_amount evenly among participant_ids.

    base      = total / count, truncated to 2 dp
    remainder = total - base * count, in whole cents
    The first `remainder` participants (input order) get one extra cent.

    The result always sums to total_amount exactly.

    Raises:
        InvalidInputError(EMPTY_PARTICIPANTS) — participant_ids is empty.
        InvalidInputError(INVALID_AMOUNT)     — total_amount <= 0.
    """
    _require_participants(participant_ids)
    total = _to_decimal(total_amount)
    _require_positive_total(total)

    count = len(participant_ids)
    base = (total / Decimal(count)).quantize(CENT, rounding=ROUND_DOWN)
    remainder_cents = int(
        ((total - base * count) / CENT).to_integral_value(rounding=ROUND_HALF_UP)
    )

    return [
        {
            "participant_id": participant_id,
            "amount": base + CENT if index < remainder_cents else base,
        }
        for index, participant_id in enumerate(participant_ids)
    ]


def compute_exact_split(total_amount, splits: list[dict]) -> list[dict]:
    """
    Validates caller-supplied amounts and passes them through unchanged.

    Exact splits are never auto-adjusted; a mismatch of 0.01 or more is
    rejected so the caller can re-prompt.

    Raises:
        InvalidInputError(EMPTY_PARTICIPANTS)  — splits is empty.
        InvalidInputError(INVALID_AMOUNT)      — total <= 0 or a split < 0.
        SplitValidationError(SPLIT_SUM_MISMATCH) — |total - sum| >= 0.01.
    """
    _require_participants(splits)
    total = _to_decimal(total_amount)
    _require_positive_total(total)

    result = []
    for split in splits:
        amount = _to_decimal(split["amount"])
        if amount < 0:
            raise InvalidInputError(
                ErrorCode.INVALID_AMOUNT,
                f"Split amount for participant {split['participant_id']} "
                f"must not be negative (got {amount}).",
                field="splits",
            )
        result.append({"participant_id": split["participant_id"], "amount": amount})

    allocated = _sum(s["amount"] for s in result)
    if abs(total - allocated) >= TOLERANCE:
        raise SplitValidationError(
            ErrorCode.SPLIT_SUM_MISMATCH,
            f"Split amounts add up to {allocated} but the expense amount is "
            f"{total} (off by {abs(total - allocated)}).",
            expected=total,
            actual=allocated,
        )

    return result


def compute_percentage_split(total_amount, splits: list[dict]) -> list[dict]:
    """
    Converts percentages to amounts.

    Every participant except the last (input order) gets
    round_half_up(total * percentage / 100, 2). The last participant gets
    total minus everything allocated so far, whatever their own percentage
    says, so the amounts always sum to total_amount exactly.

    Raises:
        InvalidInputError(EMPTY_PARTICIPANTS)        — splits is empty.
        InvalidInputError(INVALID_AMOUNT)            — total <= 0, a
                                                       percentage < 0, or the
                                                       rounded earlier shares
                                                       exceed the total.
        SplitValidationError(PERCENTAGE_SUM_MISMATCH) — |100 - sum| >= 0.01.
    """
    _require_participants(splits)
    total = _to_decimal(total_amount)
    _require_positive_total(total)

    percentages = [_to_decimal(s["percentage"]) for s in splits]
    for split, percentage in zip(splits, percentages):
        if percentage < 0:
            raise InvalidInputError(
                ErrorCode.INVALID_AMOUNT,
                f"Percentage for participant {split['participant_id']} "
                f"must not be negative (got {percentage}).",
                field="splits",
            )

    percentage_total = _sum(percentages)
    if abs(HUNDRED - percentage_total) >= TOLERANCE:
        raise SplitValidationError(
            ErrorCode.PERCENTAGE_SUM_MISMATCH,
            f"Percentages add up to {percentage_total}% instead of 100%.",
            expected=HUNDRED,
            actual=percentage_total,
        )

    result = []
    allocated = Decimal("0.00")
    last_index = len(splits) - 1

    for index, (split, percentage) in enumerate(zip(splits, percentages)):
        if index == last_index:
            amount = (total - allocated).quantize(CENT, rounding=ROUND_HALF_UP)
            # Half-up rounding of the earlier shares can overshoot a tiny total.
            if amount < 0:
                raise InvalidInputError(
                    ErrorCode.INVALID_AMOUNT,
                    f"Cannot split {total} by these percentages: rounding the "
                    f"earlier shares to the cent already allocates {allocated}, "
                    f"leaving participant {split['participant_id']} with {amount}.",
                    field="amount",
                )
        else:
            amount = (total * percentage / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
            allocated += amount

        result.append({
            "participant_id": split["participant_id"],
            "amount": amount,
            "percentage": percentage,
        })

    return result


def compute_splits(
        split_type: SplitType,
        total_amount,
        participant_ids: list | None = None,
        splits: list[dict] | None = None,
) -> list[dict]:
    """
    Dispatches to the calculator for `split_type`.

    EQUAL reads participant_ids (falling back to the participant_ids found in
    `splits`); EXACT and PERCENTAGE read `splits`.

    Every returned dict has participant_id and amount; PERCENTAGE results
    also carry percentage.
    """
    split_type = SplitType(split_type)

    if split_type == SplitType.EQUAL:
        if participant_ids is None:
            participant_ids = [s["participant_id"] for s in splits or []]
        return compute_equal_split(total_amount, participant_ids)

    if split_type == SplitType.EXACT:
        return compute_exact_split(total_amount, splits or [])

    return compute_percentage_split(total_amount, splits or [])
