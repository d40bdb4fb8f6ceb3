from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from expense_ledger.core.balances import Payment
from expense_ledger.core.errors import CurrencyMismatch
from expense_ledger.core.money import Money
from expense_ledger.core.splits import Share, SplitPolicy, calculate, validate_payments
from expense_ledger.db.models import Chat, Expense, ExpensePayer, ExpenseShare
from expense_ledger.services.members import check_members_in_chat

logger = logging.getLogger(__name__)

NOTE_MAX_LEN = 200


def _clean_note(note: Optional[str]) -> Optional[str]:
    if not note or not note.strip():
        return None
    note = note.strip()
    if len(note) > NOTE_MAX_LEN:
        raise ValueError(f"Note cannot exceed {NOTE_MAX_LEN} characters.")
    return note


def _share_rows(shares: list[Share]) -> list[ExpenseShare]:
    return [
        ExpenseShare(member_id=int(s.participant), position=i, amount_minor=s.amount.amount, ratio=s.ratio)
        for i, s in enumerate(shares)
    ]


async def _ledger_currency(session: AsyncSession, chat_id: int) -> str:
    currency = await session.scalar(select(Chat.currency).where(Chat.id == chat_id))
    if currency is None:
        raise ValueError("Unknown group.")
    return currency


async def create_expense(
    session: AsyncSession,
    *,
    chat_id: int,
    total: Money,
    policy: SplitPolicy,
    participant_member_ids: Sequence[int],
    payments: Sequence[Payment],
    created_by_member_id: int,
    note: Optional[str] = None,
) -> tuple[Expense, list[Share]]:
    if total.amount <= 0:
        raise ValueError("Expense amount must be positive.")
    currency = await _ledger_currency(session, chat_id)
    if total.currency != currency:
        # Conversion happens before an expense is recorded, never in the ledger.
        raise CurrencyMismatch(currency, total.currency)

    shares = calculate(total, policy, participant_member_ids)
    validate_payments(total, payments)

    involved = {int(s.participant) for s in shares} | {int(p.payer) for p in payments} | {created_by_member_id}
    await check_members_in_chat(session, chat_id=chat_id, member_ids=involved)

    expense = Expense(
        chat_id=chat_id,
        amount_minor=total.amount,
        currency=total.currency,
        share_mode=policy.mode,
        created_by_member_id=created_by_member_id,
        note=_clean_note(note),
    )
    session.add(expense)
    await session.flush()

    for row in _share_rows(shares):
        row.expense_id = expense.id
        session.add(row)
    paid_by: dict[int, int] = {}
    for p in payments:
        paid_by[int(p.payer)] = paid_by.get(int(p.payer), 0) + p.amount.amount
    session.add_all(
        [
            ExpensePayer(expense_id=expense.id, member_id=member_id, amount_minor=units)
            for member_id, units in paid_by.items()
            if units
        ]
    )
    await session.flush()
    logger.info("Expense %s recorded in chat %s: %s (%s)", expense.id, chat_id, total, policy.mode.value)
    return expense, shares


async def get_expense(session: AsyncSession, *, chat_id: int, expense_id: int) -> Optional[Expense]:
    return await session.scalar(
        select(Expense)
        .options(selectinload(Expense.shares), selectinload(Expense.payers))
        .where(Expense.chat_id == chat_id, Expense.id == expense_id, Expense.deleted_at.is_(None))
    )


async def replace_expense_split(
    session: AsyncSession,
    *,
    chat_id: int,
    expense_id: int,
    policy: SplitPolicy,
    participant_member_ids: Sequence[int],
) -> list[Share]:
    expense = await get_expense(session, chat_id=chat_id, expense_id=expense_id)
    if expense is None:
        raise ValueError("Expense not found.")

    shares = calculate(expense.total, policy, participant_member_ids)
    await check_members_in_chat(session, chat_id=chat_id, member_ids={int(s.participant) for s in shares})

    # The old share set is dropped as a whole before the new one is written.
    expense.shares.clear()
    await session.flush()
    expense.shares.extend(_share_rows(shares))
    expense.share_mode = policy.mode
    await session.flush()
    logger.info("Expense %s re-split in chat %s (%s)", expense.id, chat_id, policy.mode.value)
    return shares


async def delete_expense(session: AsyncSession, *, chat_id: int, expense_id: int) -> bool:
    expense = await session.scalar(
        select(Expense).where(Expense.chat_id == chat_id, Expense.id == expense_id, Expense.deleted_at.is_(None))
    )
    if expense is None:
        return False
    expense.deleted_at = datetime.now(timezone.utc)
    await session.flush()
    return True


async def get_last_expense_by(session: AsyncSession, *, chat_id: int, member_id: int) -> Optional[Expense]:
    return await session.scalar(
        select(Expense)
        .where(
            Expense.chat_id == chat_id,
            Expense.created_by_member_id == member_id,
            Expense.deleted_at.is_(None),
        )
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .limit(1)
    )


async def get_last_expenses(session: AsyncSession, *, chat_id: int, limit: int = 5) -> list[Expense]:
    res = await session.scalars(
        select(Expense)
        .where(Expense.chat_id == chat_id, Expense.deleted_at.is_(None))
        .order_by(Expense.created_at.desc(), Expense.id.desc())
        .limit(limit)
    )
    return list(res)
