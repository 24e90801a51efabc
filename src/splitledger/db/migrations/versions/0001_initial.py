"""initial schema

Revision ID: 0001
Revises: 
Create Date: 2026-10-19 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "groups",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "group_members",
        sa.Column("group_id", sa.Text(), sa.ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.Text(), primary_key=True),
        sa.Column("display_name", sa.Text(), nullable=False),
        sa.Column("photo_url", sa.Text()),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("group_id", sa.Text(), sa.ForeignKey("groups.id", ondelete="CASCADE")),
        sa.Column("type", sa.Text(), nullable=False, server_default="shared"),
        sa.Column("user_id", sa.Text(), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("paid_by", sa.Text()),
        sa.Column("split_method", sa.Text()),
        sa.Column("participants", postgresql.ARRAY(sa.Text()), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("type in ('shared','personal')", name="expenses_type_check"),
        sa.CheckConstraint("amount_cents >= 0", name="expenses_amount_check"),
    )

    op.create_table(
        "expense_shares",
        sa.Column("expense_id", sa.Text(), sa.ForeignKey("expenses.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.Text(), primary_key=True),
        sa.Column("share_cents", sa.BigInteger(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
    )

    op.create_table(
        "settlements",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("group_id", sa.Text(), sa.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False),
        sa.Column("from_user_id", sa.Text(), nullable=False),
        sa.Column("to_user_id", sa.Text(), nullable=False),
        sa.Column("amount_cents", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.Text(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("completed_by", sa.Text()),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", sa.Text()),
        sa.Column("related_expense_ids", postgresql.ARRAY(sa.Text()), nullable=False, server_default="{}"),
        sa.Column("calculated_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("status in ('pending','completed','cancelled')", name="settlements_status_check"),
        sa.CheckConstraint("amount_cents > 0", name="settlements_amount_check"),
        sa.CheckConstraint("from_user_id <> to_user_id", name="settlements_parties_check"),
    )

    op.create_index("idx_expenses_group", "expenses", ["group_id"])
    op.create_index("idx_settlements_group_status", "settlements", ["group_id", "status"])
    op.create_index("idx_settlements_from_user", "settlements", ["from_user_id"])
    op.create_index("idx_settlements_to_user", "settlements", ["to_user_id"])


def downgrade() -> None:
    op.drop_index("idx_settlements_to_user", table_name="settlements")
    op.drop_index("idx_settlements_from_user", table_name="settlements")
    op.drop_index("idx_settlements_group_status", table_name="settlements")
    op.drop_index("idx_expenses_group", table_name="expenses")

    op.drop_table("settlements")
    op.drop_table("expense_shares")
    op.drop_table("expenses")
    op.drop_table("group_members")
    op.drop_table("groups")
