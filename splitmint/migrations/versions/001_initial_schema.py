"""Initial schema — all tables, enums, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-17

Append-only:
  This file must NEVER be edited after it has been applied to any database.
  If a schema change is required, create a NEW migration file.

Creation order:
  1. PostgreSQL enum type (must exist before the expenses table)
  2. Tables in FK dependency order (groups → participants → expenses → splits)
  3. Indexes

ON DELETE policies:
  participants.group_id            → CASCADE   (roster owned by group)
  expenses.group_id                → CASCADE   (expenses owned by group)
  expenses.paid_by_participant_id  → RESTRICT  (payer's expenses are deleted first)
  splits.expense_id                → CASCADE   (splits owned by expense)
  splits.participant_id            → RESTRICT  (shares are dropped first)
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration — no parent
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:
    """
    Apply the full initial schema.

    The enum type is created via op.execute() so the exact SQL is explicit
    and reviewable; the column below refers to it with create_type=False.
    """

    # ── Step 1: PostgreSQL enum type ──────────────────────────────────────

    op.execute("""
        CREATE TYPE split_type_enum AS ENUM ('EQUAL', 'EXACT', 'PERCENTAGE')
    """)

    # ── Step 2: groups ─────────────────────────────────────────────────────

    op.create_table(
        "groups",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_groups_name_nonempty",
        ),
    )

    # ── Step 3: participants ───────────────────────────────────────────────

    op.create_table(
        "participants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_participants_group"),
            nullable=False,
        ),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_participants"),
        sa.CheckConstraint(
            "LENGTH(TRIM(name)) > 0",
            name="ck_participants_name_nonempty",
        ),
    )

    # ── Step 4: expenses ───────────────────────────────────────────────────

    op.create_table(
        "expenses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "group_id",
            sa.Integer(),
            sa.ForeignKey("groups.id", ondelete="CASCADE", name="fk_expenses_group"),
            nullable=False,
        ),
        sa.Column(
            "paid_by_participant_id",
            sa.Integer(),
            sa.ForeignKey("participants.id", ondelete="RESTRICT", name="fk_expenses_payer"),
            nullable=False,
        ),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column(
            "split_type",
            postgresql.ENUM(
                "EQUAL", "EXACT", "PERCENTAGE",
                name="split_type_enum",
                create_type=False,
            ),
            nullable=False,
            server_default="EQUAL",
        ),
        sa.Column(
            "expense_date",
            sa.Date(),
            nullable=False,
            server_default=sa.text("CURRENT_DATE"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_expenses"),
        sa.CheckConstraint("amount > 0", name="ck_expenses_amount_positive"),
        sa.CheckConstraint(
            "LENGTH(TRIM(description)) > 0",
            name="ck_expenses_description_nonempty",
        ),
    )

    # ── Step 5: splits ─────────────────────────────────────────────────────
    # percentage is only filled for PERCENTAGE expenses.

    op.create_table(
        "splits",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "expense_id",
            sa.Integer(),
            sa.ForeignKey("expenses.id", ondelete="CASCADE", name="fk_splits_expense"),
            nullable=False,
        ),
        sa.Column(
            "participant_id",
            sa.Integer(),
            sa.ForeignKey("participants.id", ondelete="RESTRICT", name="fk_splits_participant"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("percentage", sa.Numeric(5, 2), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_splits"),
        sa.UniqueConstraint(
            "expense_id", "participant_id",
            name="uq_splits_expense_participant",
        ),
    )

    # ── Step 6: Indexes ────────────────────────────────────────────────────

    op.create_index("ix_participants_group_id", "participants", ["group_id"])
    op.create_index("ix_expenses_group_id", "expenses", ["group_id"])
    op.create_index(
        "ix_expenses_paid_by_participant_id",
        "expenses",
        ["paid_by_participant_id"],
    )
    op.create_index("ix_splits_expense_id", "splits", ["expense_id"])
    op.create_index("ix_splits_participant_id", "splits", ["participant_id"])


def downgrade() -> None:
    """Drop all objects created in upgrade(), in reverse dependency order."""

    op.drop_index("ix_splits_participant_id",           table_name="splits")
    op.drop_index("ix_splits_expense_id",               table_name="splits")
    op.drop_index("ix_expenses_paid_by_participant_id", table_name="expenses")
    op.drop_index("ix_expenses_group_id",               table_name="expenses")
    op.drop_index("ix_participants_group_id",           table_name="participants")

    op.drop_table("splits")
    op.drop_table("expenses")
    op.drop_table("participants")
    op.drop_table("groups")

    op.execute("DROP TYPE IF EXISTS split_type_enum")
