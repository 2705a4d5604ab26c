"""Create ledger schema with recurring rules and generated transaction link

Revision ID: 3e7a1c9b2d40
Revises:
Create Date: 2025-09-01 09:00:00.000000
"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3e7a1c9b2d40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("nickname", sa.String(length=60), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "ledgergroup",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("owner_user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        *_timestamps(),
    )
    op.create_table(
        "category",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", sa.Enum("INCOME", "EXPENSE", name="categorytype"), nullable=False),
        sa.Column("color", sa.String(length=9), nullable=True),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("ledgergroup.id"), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "recurringrule",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("ledgergroup.id"), nullable=True),
        sa.Column("created_by", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("frequency", sa.Enum("DAILY", "WEEKLY", "MONTHLY", name="recurringfrequency"), nullable=False),
        sa.Column("day_rule", sa.String(length=20), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("category.id", ondelete="SET NULL"), nullable=True),
        sa.Column("merchant", sa.String(length=160), nullable=True),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_recurring_amount_positive"),
    )
    op.create_index("ix_recurring_active_start", "recurringrule", ["is_active", "start_date"], unique=False)
    op.create_table(
        "transaction",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("group_id", sa.Integer(), sa.ForeignKey("ledgergroup.id"), nullable=True),
        sa.Column("owner_user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("type", sa.Enum("INCOME", "EXPENSE", "TRANSFER", name="txntype"), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("category.id", ondelete="SET NULL"), nullable=True),
        sa.Column("merchant", sa.String(length=160), nullable=True),
        sa.Column("memo", sa.Text(), nullable=True),
        sa.Column(
            "generated_from_rule_id",
            sa.Integer(),
            sa.ForeignKey("recurringrule.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("generated_for_date", sa.Date(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("generated_from_rule_id", "generated_for_date", name="uq_txn_generated_rule_date"),
    )
    op.create_index("ix_txn_owner_date", "transaction", ["owner_user_id", "date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_txn_owner_date", table_name="transaction")
    op.drop_table("transaction")
    op.drop_index("ix_recurring_active_start", table_name="recurringrule")
    op.drop_table("recurringrule")
    op.drop_table("category")
    op.drop_table("ledgergroup")
    op.drop_table("user")
