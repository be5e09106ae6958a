"""
schemas/expense_schema.py — Marshmallow schemas for expense and split endpoints.

Validation responsibility:
  - This file:
      - Field types, lengths, enum values, decimal precision
      - Which inputs each split_type needs (request shape rule, 400)
      - DUPLICATE_SPLIT_PARTICIPANT (400) — request shape rule
      - Non-empty-after-trim enforcement for description
  - services/split_service.py:
      - SPLIT_SUM_MISMATCH / PERCENTAGE_SUM_MISMATCH (422) — Decimal arithmetic
      - EMPTY_PARTICIPANTS (422)
  - services/expense_service.py:
      - PAYER_NOT_MEMBER (422)             — requires DB lookup
      - SPLIT_PARTICIPANT_NOT_MEMBER (422) — requires DB lookup

IMPORTANT: Inherits from marshmallow.Schema directly — never ma.Schema.
           See extensions.py for the full explanation.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import (
    EXCLUDE,
    Schema,
    ValidationError,
    fields,
    post_load,
    validate,
    validates_schema,
)

from splitmint.app.errors import ErrorCode
from splitmint.app.models.expense import SplitType

MISSING_MESSAGE = "Missing data for required field."


# ── Shared monetary validators ────────────────────────────────────────────
#
# Input with more than 2 decimal places is REJECTED with
# INVALID_AMOUNT_PRECISION — never rounded or truncated.
# ──────────────────────────────────────────────────────────────────────────

def _validate_precision(value: Decimal) -> None:
    # Decimal("10.123").as_tuple().exponent == -3  → 3 dp → REJECT
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_monetary_amount(value: Decimal) -> None:
    """Expense totals: strictly greater than zero, at most 2 decimal places."""
    if value <= Decimal("0"):
        raise ValidationError("Amount must be greater than zero.")
    _validate_precision(value)


def _validate_share_amount(value: Decimal) -> None:
    """Exact split shares: zero is allowed, negatives are not."""
    if value < Decimal("0"):
        raise ValidationError("Split amount must not be negative.")
    _validate_precision(value)


def _validate_percentage(value: Decimal) -> None:
    if value < Decimal("0") or value > Decimal("100"):
        raise ValidationError("Percentage must be between 0 and 100.")
    _validate_precision(value)


def _validate_non_empty_after_trim(value: str) -> None:
    """
    Raises ValidationError if the string is blank or contains only whitespace.
    Mirrors the DB CHECK(LENGTH(TRIM(...)) > 0) constraint at the API layer.
    """
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


# ── Sub-schema: one entry in the `splits` array ───────────────────────────

class SplitInputSchema(Schema):
    """
    A single entry of the `splits` array.

    EXACT entries carry `amount`; PERCENTAGE entries carry `percentage`.
    Which one is required is decided by the parent schema.
    """

    participant_id = fields.Int(
        required=True,
        strict=True,   # reject floats like 1.0
        validate=validate.Range(min=1, error="participant_id must be a positive integer."),
    )

    amount = fields.Decimal(
        load_default=None,
        validate=_validate_share_amount,
    )

    percentage = fields.Decimal(
        load_default=None,
        validate=_validate_percentage,
    )


# ── Split request (preview) ────────────────────────────────────────────────

class SplitRequestSchema(Schema):
    """
    POST /splits/preview, and the split part of every expense payload.

    Shape rules per split_type:
      - EQUAL:      participant_ids (ordered) — or a splits array whose
                    participant_ids are used in order.
      - EXACT:      splits, each with an amount.
      - PERCENTAGE: splits, each with a percentage.
    A participant may appear only once (DUPLICATE_SPLIT_PARTICIPANT).
    """

    amount = fields.Decimal(
        required=True,
        validate=_validate_monetary_amount,
    )

    split_type = fields.Enum(
        SplitType,
        load_default=SplitType.EQUAL,
        by_value=True,
        error_messages={"unknown": ErrorCode.INVALID_SPLIT_TYPE},
    )

    participant_ids = fields.List(
        fields.Int(strict=True, validate=validate.Range(min=1)),
        load_default=None,
    )

    splits = fields.List(
        fields.Nested(SplitInputSchema),
        load_default=None,
    )

    @validates_schema
    def validate_split_inputs(self, data: dict, **kwargs) -> None:
        split_type = data.get("split_type", SplitType.EQUAL)
        participant_ids = data.get("participant_ids")
        splits = data.get("splits")

        if split_type == SplitType.EQUAL:
            if participant_ids is None and splits is None:
                raise ValidationError({"participant_ids": [MISSING_MESSAGE]})
            ids = participant_ids if participant_ids is not None else [
                s["participant_id"] for s in splits
            ]
            if len(ids) != len(set(ids)):
                field = "participant_ids" if participant_ids is not None else "splits"
                raise ValidationError({field: [ErrorCode.DUPLICATE_SPLIT_PARTICIPANT]})
            return

        if splits is None:
            raise ValidationError({"splits": [MISSING_MESSAGE]})

        required_key = "amount" if split_type == SplitType.EXACT else "percentage"
        for s in splits:
            if s.get(required_key) is None:
                raise ValidationError(
                    {
                        "splits": [
                            f"Every split needs a {required_key} when split_type "
                            f"is {split_type.value}."
                        ],
                    }
                )

        ids = [s["participant_id"] for s in splits]
        if len(ids) != len(set(ids)):
            raise ValidationError({"splits": [ErrorCode.DUPLICATE_SPLIT_PARTICIPANT]})


# ── Create / replace expense ───────────────────────────────────────────────

class ExpenseInputSchema(SplitRequestSchema):
    """
    POST /groups/:id/expenses and PUT /expenses/:id.

    PUT is a full replace, so both endpoints take the same payload.
    expense_date defaults to today on create and is left unchanged on
    replace when omitted.
    """

    paid_by_participant_id = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(min=1, error="paid_by_participant_id must be a positive integer."),
    )

    description = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=255,
                error="Description must be between 1 and 255 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )

    expense_date = fields.Date(load_default=None)


# ── Activity feed query string ─────────────────────────────────────────────

def _validate_amount_bound(value: Decimal) -> None:
    if value < Decimal("0"):
        raise ValidationError("Amount filters must not be negative.")
    _validate_precision(value)


class ActivityQuerySchema(Schema):
    """
    GET /activity query parameters. Every filter is optional and they combine
    with AND.

      q               case-insensitive substring of the description, the
                      payer's name or the group's name
      group_id        only this group's expenses
      participant_id  expenses this participant paid for or has a share in
      date_from/to    expense_date range, both ends inclusive
      min/max_amount  expense total range, both ends inclusive
      limit           page size; the route applies the default and ceiling
    """

    class Meta:
        unknown = EXCLUDE  # cache busters and the like are ignored

    q = fields.Str(load_default=None, validate=validate.Length(max=100))
    group_id = fields.Int(load_default=None, validate=validate.Range(min=1))
    participant_id = fields.Int(load_default=None, validate=validate.Range(min=1))
    date_from = fields.Date(load_default=None)
    date_to = fields.Date(load_default=None)
    min_amount = fields.Decimal(load_default=None, validate=_validate_amount_bound)
    max_amount = fields.Decimal(load_default=None, validate=_validate_amount_bound)
    limit = fields.Int(
        load_default=None,
        validate=validate.Range(min=1, error="limit must be a positive integer."),
    )

    @validates_schema
    def validate_ranges(self, data: dict, **kwargs) -> None:
        date_from, date_to = data.get("date_from"), data.get("date_to")
        if date_from is not None and date_to is not None and date_to < date_from:
            raise ValidationError({"date_to": ["date_to must not be before date_from."]})

        low, high = data.get("min_amount"), data.get("max_amount")
        if low is not None and high is not None and high < low:
            raise ValidationError({"max_amount": ["max_amount must not be less than min_amount."]})

    @post_load
    def drop_blank_search(self, data: dict, **kwargs) -> dict:
        if data.get("q") is not None:
            data["q"] = data["q"].strip() or None
        return data
