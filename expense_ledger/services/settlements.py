from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expense_ledger.core.errors import CurrencyMismatch
from expense_ledger.core.money import Money
from expense_ledger.db.models import Chat, Settlement, SettlementStatus
from expense_ledger.services.members import check_members_in_chat

logger = logging.getLogger(__name__)


async def create_settlement(
    session: AsyncSession,
    *,
    chat_id: int,
    payer_member_id: int,
    payee_member_id: int,
    amount: Money,
    note: Optional[str] = None,
) -> Settlement:
    if amount.amount <= 0:
        raise ValueError("Settlement amount must be positive.")
    if payer_member_id == payee_member_id:
        raise ValueError("You cannot settle with yourself.")
    currency = await session.scalar(select(Chat.currency).where(Chat.id == chat_id))
    if currency is None:
        raise ValueError("Unknown group.")
    if amount.currency != currency:
        raise CurrencyMismatch(currency, amount.currency)
    await check_members_in_chat(session, chat_id=chat_id, member_ids={payer_member_id, payee_member_id})

    settlement = Settlement(
        chat_id=chat_id,
        payer_member_id=payer_member_id,
        payee_member_id=payee_member_id,
        amount_minor=amount.amount,
        currency=amount.currency,
        status=SettlementStatus.PENDING,
        note=(note.strip() if note and note.strip() else None),
    )
    session.add(settlement)
    await session.flush()
    return settlement


async def get_settlement(session: AsyncSession, *, chat_id: int, settlement_id: int) -> Optional[Settlement]:
    return await session.scalar(
        select(Settlement).where(Settlement.chat_id == chat_id, Settlement.id == settlement_id)
    )


async def _resolve(
    session: AsyncSession,
    *,
    chat_id: int,
    settlement_id: int,
    actor_member_id: int,
    status: SettlementStatus,
) -> Settlement:
    settlement = await get_settlement(session, chat_id=chat_id, settlement_id=settlement_id)
    if settlement is None:
        raise ValueError("Settlement not found.")

    # Payee confirms or rejects the money; only the payer may withdraw the claim.
    allowed_actor = settlement.payer_member_id if status is SettlementStatus.CANCELLED else settlement.payee_member_id
    if actor_member_id != allowed_actor:
        raise PermissionError("This action is not yours to take.")
    if settlement.status is not SettlementStatus.PENDING:
        raise ValueError(f"Settlement is already {settlement.status.value.lower()}.")

    settlement.status = status
    settlement.resolved_at = datetime.now(timezone.utc)
    await session.flush()
    logger.info("Settlement %s in chat %s is now %s", settlement.id, chat_id, status.value)
    return settlement


async def confirm_settlement(session: AsyncSession, *, chat_id: int, settlement_id: int, actor_member_id: int) -> Settlement:
    return await _resolve(
        session, chat_id=chat_id, settlement_id=settlement_id, actor_member_id=actor_member_id, status=SettlementStatus.CONFIRMED
    )


async def reject_settlement(session: AsyncSession, *, chat_id: int, settlement_id: int, actor_member_id: int) -> Settlement:
    return await _resolve(
        session, chat_id=chat_id, settlement_id=settlement_id, actor_member_id=actor_member_id, status=SettlementStatus.REJECTED
    )


async def cancel_settlement(session: AsyncSession, *, chat_id: int, settlement_id: int, actor_member_id: int) -> Settlement:
    return await _resolve(
        session, chat_id=chat_id, settlement_id=settlement_id, actor_member_id=actor_member_id, status=SettlementStatus.CANCELLED
    )
