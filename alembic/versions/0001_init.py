"""init ledger tables

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


UTC_NOW = sa.text("timezone('utc', now())")

SHARE_MODES = ("EQUAL", "EXACT", "PERCENT", "WEIGHT")
SETTLEMENT_STATUSES = ("PENDING", "CONFIRMED", "CANCELLED", "REJECTED")


def upgrade() -> None:
    op.create_table(
        "chats",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("tg_chat_id", sa.BigInteger(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("currency", sa.String(length=3), server_default="USD", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.UniqueConstraint("tg_chat_id", name="uq_chats_tg_chat_id"),
    )
    op.create_index("ix_chats_tg_chat_id", "chats", ["tg_chat_id"])

    op.create_table(
        "members",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("chat_id", sa.BigInteger(), sa.ForeignKey("chats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("tg_user_id", sa.BigInteger(), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=True),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.UniqueConstraint("chat_id", "tg_user_id", name="uq_members_chat_tg_user"),
    )
    op.create_index("ix_members_chat_id", "members", ["chat_id"])
    op.create_index("ix_members_chat_tg_user", "members", ["chat_id", "tg_user_id"])
    # /paid and /expense resolve @usernames within a chat.
    op.create_index("ix_members_chat_username", "members", ["chat_id", "username"])

    # Enum types are created explicitly (checkfirst) and not by the table DDL.
    share_mode = postgresql.ENUM(*SHARE_MODES, name="share_mode", create_type=False)
    share_mode.create(op.get_bind(), checkfirst=True)
    settlement_status = postgresql.ENUM(*SETTLEMENT_STATUSES, name="settlement_status", create_type=False)
    settlement_status.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "expenses",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("chat_id", sa.BigInteger(), sa.ForeignKey("chats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("share_mode", share_mode, nullable=False),
        sa.Column(
            "created_by_member_id",
            sa.BigInteger(),
            sa.ForeignKey("members.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_expenses_chat_id", "expenses", ["chat_id"])
    op.create_index("ix_expenses_chat_created_at", "expenses", ["chat_id", "created_at"])

    op.create_table(
        "expense_shares",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("expense_id", sa.BigInteger(), sa.ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("member_id", sa.BigInteger(), sa.ForeignKey("members.id", ondelete="CASCADE"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("ratio", sa.Numeric(12, 4), nullable=True),
        sa.UniqueConstraint("expense_id", "member_id", name="uq_expense_share_member"),
    )
    op.create_index("ix_expense_shares_expense_id", "expense_shares", ["expense_id"])

    op.create_table(
        "expense_payers",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("expense_id", sa.BigInteger(), sa.ForeignKey("expenses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("member_id", sa.BigInteger(), sa.ForeignKey("members.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.UniqueConstraint("expense_id", "member_id", name="uq_expense_payer_member"),
    )
    op.create_index("ix_expense_payers_expense_id", "expense_payers", ["expense_id"])

    op.create_table(
        "settlements",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("chat_id", sa.BigInteger(), sa.ForeignKey("chats.id", ondelete="CASCADE"), nullable=False),
        sa.Column("payer_member_id", sa.BigInteger(), sa.ForeignKey("members.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("payee_member_id", sa.BigInteger(), sa.ForeignKey("members.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", settlement_status, server_default="PENDING", nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=UTC_NOW, nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("amount_minor > 0", name="ck_settlements_amount_positive"),
        sa.CheckConstraint("payer_member_id <> payee_member_id", name="ck_settlements_distinct_parties"),
    )
    op.create_index("ix_settlements_chat_status", "settlements", ["chat_id", "status"])


def downgrade() -> None:
    op.drop_index("ix_settlements_chat_status", table_name="settlements")
    op.drop_table("settlements")

    op.drop_index("ix_expense_payers_expense_id", table_name="expense_payers")
    op.drop_table("expense_payers")

    op.drop_index("ix_expense_shares_expense_id", table_name="expense_shares")
    op.drop_table("expense_shares")

    op.drop_index("ix_expenses_chat_created_at", table_name="expenses")
    op.drop_index("ix_expenses_chat_id", table_name="expenses")
    op.drop_table("expenses")

    for name, values in (("settlement_status", SETTLEMENT_STATUSES), ("share_mode", SHARE_MODES)):
        postgresql.ENUM(*values, name=name, create_type=False).drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_members_chat_username", table_name="members")
    op.drop_index("ix_members_chat_tg_user", table_name="members")
    op.drop_index("ix_members_chat_id", table_name="members")
    op.drop_table("members")

    op.drop_index("ix_chats_tg_chat_id", table_name="chats")
    op.drop_table("chats")
