"""
models/split.py — Split table definition.

Key design points:
  - `amount` uses Numeric(12, 2) — never Float. Always populated, whatever
    the expense's split type.
  - `percentage` is only set for PERCENTAGE expenses; NULL otherwise.
  - expense_id is ON DELETE CASCADE — splits are owned by their expense.
  - UNIQUE(expense_id, participant_id): one split per participant per expense
    (also enforced as DUPLICATE_SPLIT_PARTICIPANT at the schema layer).

The "splits add up to the expense amount" invariant is enforced by
services/split_service.py before any row is written, not here.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitmint.app.extensions import db


class Split(db.Model):
    __tablename__ = "splits"

    __table_args__ = (
        UniqueConstraint(
            "expense_id",
            "participant_id",
            name="uq_splits_expense_participant",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    expense_id: Mapped[int] = mapped_column(
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    participant_id: Mapped[int] = mapped_column(
        ForeignKey("participants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(12, 2),
        nullable=False,
    )

    percentage: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 2),
        nullable=True,
    )

    # ── Relationships ──────────────────────────────────────────────────────

    expense: Mapped["Expense"] = relationship(  # noqa: F821
        "Expense",
        back_populates="splits",
    )

    participant: Mapped["Participant"] = relationship("Participant")  # noqa: F821

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Split id={self.id} "
            f"expense_id={self.expense_id} "
            f"participant_id={self.participant_id} "
            f"amount={self.amount}>"
        )
