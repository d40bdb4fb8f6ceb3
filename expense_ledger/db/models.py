from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from expense_ledger.core.money import Money
from expense_ledger.core.splits import ShareMode


UTC_NOW = sa.text("timezone('utc', now())")


class Base(DeclarativeBase):
    pass


class Chat(Base):
    __tablename__ = "chats"
    __table_args__ = (
        UniqueConstraint("tg_chat_id", name="uq_chats_tg_chat_id"),
        Index("ix_chats_tg_chat_id", "tg_chat_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    # Telegram chat id (group id) is a signed 64-bit integer.
    tg_chat_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # Single ledger currency of the group.
    currency: Mapped[str] = mapped_column(String(3), nullable=False, server_default="USD")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)

    members: Mapped[list[Member]] = relationship(back_populates="chat", cascade="all, delete-orphan")
    expenses: Mapped[list[Expense]] = relationship(back_populates="chat", cascade="all, delete-orphan")


class Member(Base):
    __tablename__ = "members"
    __table_args__ = (
        UniqueConstraint("chat_id", "tg_user_id", name="uq_members_chat_tg_user"),
        Index("ix_members_chat_tg_user", "chat_id", "tg_user_id"),
        Index("ix_members_chat_username", "chat_id", "username"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("chats.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tg_user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)

    chat: Mapped[Chat] = relationship(back_populates="members")


class SettlementStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"


class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = (
        Index("ix_expenses_chat_id", "chat_id"),
        Index("ix_expenses_chat_created_at", "chat_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("chats.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Minor currency units (cents for USD).
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    share_mode: Mapped[ShareMode] = mapped_column(Enum(ShareMode, name="share_mode"), nullable=False)
    created_by_member_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
    )
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    chat: Mapped[Chat] = relationship(back_populates="expenses")
    created_by: Mapped[Member] = relationship(foreign_keys=[created_by_member_id])

    shares: Mapped[list[ExpenseShare]] = relationship(
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseShare.position",
    )
    payers: Mapped[list[ExpensePayer]] = relationship(
        back_populates="expense",
        cascade="all, delete-orphan",
    )

    @property
    def total(self) -> Money:
        return Money(int(self.amount_minor), self.currency)


class ExpenseShare(Base):
    __tablename__ = "expense_shares"
    __table_args__ = (
        UniqueConstraint("expense_id", "member_id", name="uq_expense_share_member"),
        Index("ix_expense_shares_expense_id", "expense_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    expense_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
    )
    member_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
    )
    # Order the calculator saw the participant in; the remainder rule depends on it.
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    # Percentage or weight the share was computed from.
    ratio: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 4), nullable=True)

    expense: Mapped[Expense] = relationship(back_populates="shares")
    member: Mapped[Member] = relationship()


class ExpensePayer(Base):
    __tablename__ = "expense_payers"
    __table_args__ = (
        UniqueConstraint("expense_id", "member_id", name="uq_expense_payer_member"),
        Index("ix_expense_payers_expense_id", "expense_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    expense_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("expenses.id", ondelete="CASCADE"),
        nullable=False,
    )
    member_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)

    expense: Mapped[Expense] = relationship(back_populates="payers")
    member: Mapped[Member] = relationship()


class Settlement(Base):
    __tablename__ = "settlements"
    __table_args__ = (
        Index("ix_settlements_chat_status", "chat_id", "status"),
        sa.CheckConstraint("amount_minor > 0", name="ck_settlements_amount_positive"),
        sa.CheckConstraint("payer_member_id <> payee_member_id", name="ck_settlements_distinct_parties"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    chat_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("chats.id", ondelete="CASCADE"),
        nullable=False,
    )
    payer_member_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
    )
    payee_member_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("members.id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    status: Mapped[SettlementStatus] = mapped_column(
        Enum(SettlementStatus, name="settlement_status"),
        nullable=False,
        server_default=SettlementStatus.PENDING.value,
    )
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=UTC_NOW, nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    payer: Mapped[Member] = relationship(foreign_keys=[payer_member_id])
    payee: Mapped[Member] = relationship(foreign_keys=[payee_member_id])

    @property
    def amount(self) -> Money:
        return Money(int(self.amount_minor), self.currency)
