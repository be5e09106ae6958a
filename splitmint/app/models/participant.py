"""
models/participant.py — Participant table definition.

A participant is a named member of exactly one group. Participants are not
user accounts; there is no authentication model.

Removal is NOT a plain row delete: expenses they paid and their split rows
must be cleaned up first. That cascade lives in
services/group_service.remove_participant(), never here.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from splitmint.app.extensions import db


class Participant(db.Model):
    __tablename__ = "participants"

    __table_args__ = (
        CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_participants_name_nonempty",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    group_id: Mapped[int] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="participants",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Participant id={self.id} "
            f"group_id={self.group_id} "
            f"name={self.name!r}>"
        )
