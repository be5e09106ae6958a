"""
errors.py — AppError base class, engine error taxonomy and error code registry.

Every error returned by the SplitMint API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Two failure families come out of the split/balance engine:
  - SplitValidationError — an exact or percentage split does not add up.
    The caller must re-prompt; the engine never auto-corrects.
  - InvalidInputError    — a structurally impossible request (empty
    participant set, non-positive amount, a payer or split participant
    outside the expense's group).

Both are raised synchronously and never retried; there is nothing transient
in pure computation.
"""

from __future__ import annotations

from decimal import Decimal


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


class InvalidInputError(AppError):
    """A request the engine cannot compute at all (422)."""

    def __init__(
            self,
            code: str,
            message: str,
            field: str | None = None,
            http_status: int = 422,
    ) -> None:
        super().__init__(code, message, http_status, field=field)


class SplitValidationError(AppError):
    """
    A split whose parts do not add up to the whole (422).

    Carries the expected and actual sums so the caller can tell the user
    exactly how far off the input is.
    """

    def __init__(
            self,
            code: str,
            message: str,
            expected: Decimal,
            actual: Decimal,
            field: str | None = "splits",
    ) -> None:
        super().__init__(code, message, 422, field=field)
        self.expected = expected
        self.actual = actual

    @property
    def difference(self) -> Decimal:
        return abs(self.expected - self.actual)

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["error"]["expected"] = str(self.expected)
        body["error"]["actual"] = str(self.actual)
        body["error"]["difference"] = str(self.difference)
        return body


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD               = "MISSING_FIELD"
    INVALID_FIELD               = "INVALID_FIELD"
    INVALID_AMOUNT_PRECISION    = "INVALID_AMOUNT_PRECISION"
    INVALID_SPLIT_TYPE          = "INVALID_SPLIT_TYPE"
    DUPLICATE_SPLIT_PARTICIPANT = "DUPLICATE_SPLIT_PARTICIPANT"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    GROUP_NOT_FOUND             = "GROUP_NOT_FOUND"
    PARTICIPANT_NOT_FOUND       = "PARTICIPANT_NOT_FOUND"
    EXPENSE_NOT_FOUND           = "EXPENSE_NOT_FOUND"

    # ── Invalid input (422) — InvalidInputError ───────────────────────────
    EMPTY_PARTICIPANTS          = "EMPTY_PARTICIPANTS"
    INVALID_AMOUNT              = "INVALID_AMOUNT"
    PAYER_NOT_MEMBER            = "PAYER_NOT_MEMBER"
    SPLIT_PARTICIPANT_NOT_MEMBER = "SPLIT_PARTICIPANT_NOT_MEMBER"

    # ── Split validation (422) — SplitValidationError ─────────────────────
    SPLIT_SUM_MISMATCH          = "SPLIT_SUM_MISMATCH"
    PERCENTAGE_SUM_MISMATCH     = "PERCENTAGE_SUM_MISMATCH"

    # ── Roster rules (422) ─────────────────────────────────────────────────
    GROUP_FULL                  = "GROUP_FULL"

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR              = "INTERNAL_ERROR"
