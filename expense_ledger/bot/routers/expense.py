from __future__ import annotations

import logging

from aiogram import Bot, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from expense_ledger.bot.commands import build_policy, parse_expense_args, parse_resplit_args
from expense_ledger.bot.keyboards import close_keyboard
from expense_ledger.bot.text import format_money, render_error, render_expense, render_recent
from expense_ledger.bot.utils import is_group_chat, reply_temporary
from expense_ledger.core.balances import Payment
from expense_ledger.core.money import Money
from expense_ledger.db.models import Chat, Member
from expense_ledger.services.expenses import (
    create_expense,
    delete_expense,
    get_last_expense_by,
    get_last_expenses,
    replace_expense_split,
)
from expense_ledger.services.members import load_directory

logger = logging.getLogger(__name__)

router = Router(name=__name__)


@router.message(Command("expense"))
async def expense_cmd(
    message: Message,
    command: CommandObject,
    bot: Bot,
    session: AsyncSession,
    chat_db: Chat,
    member_db: Member,
    reply_ttl: float,
) -> None:
    if not is_group_chat(message):
        return

    directory = await load_directory(session, chat_id=chat_db.id)
    try:
        cmd = parse_expense_args(command.args)
        total = Money.from_decimal(cmd.amount, chat_db.currency)
        policy, participant_ids = build_policy(
            cmd,
            ids_by_username=directory.ids_by_username,
            all_member_ids=directory.ids,
            currency=chat_db.currency,
        )
        _, shares = await create_expense(
            session,
            chat_id=chat_db.id,
            total=total,
            policy=policy,
            participant_member_ids=participant_ids,
            payments=[Payment(payer=member_db.id, amount=total)],
            created_by_member_id=member_db.id,
            note=cmd.note,
        )
    except ValueError as e:
        await reply_temporary(message, bot, render_error(e), ttl_seconds=reply_ttl)
        return

    await reply_temporary(
        message,
        bot,
        render_expense(total, shares, directory.by_id, payer_id=member_db.id),
        ttl_seconds=reply_ttl,
        reply_markup=close_keyboard(initiator_user_id=message.from_user.id),
    )


@router.message(Command("undo"))
async def undo_cmd(message: Message, bot: Bot, session: AsyncSession, chat_db: Chat, member_db: Member, reply_ttl: float) -> None:
    if not is_group_chat(message):
        return

    expense = await get_last_expense_by(session, chat_id=chat_db.id, member_id=member_db.id)
    if expense is None or not await delete_expense(session, chat_id=chat_db.id, expense_id=expense.id):
        await reply_temporary(message, bot, "You have no expense to remove.", ttl_seconds=reply_ttl)
        return

    logger.info("Expense %s removed by member %s", expense.id, member_db.id)
    await reply_temporary(
        message,
        bot,
        f"Removed your expense of {format_money(expense.total)}.",
        ttl_seconds=reply_ttl,
    )


@router.message(Command("resplit"))
async def resplit_cmd(
    message: Message,
    command: CommandObject,
    bot: Bot,
    session: AsyncSession,
    chat_db: Chat,
    member_db: Member,
    reply_ttl: float,
) -> None:
    if not is_group_chat(message):
        return

    expense = await get_last_expense_by(session, chat_id=chat_db.id, member_id=member_db.id)
    if expense is None:
        await reply_temporary(message, bot, "You have no expense to re-split.", ttl_seconds=reply_ttl)
        return

    directory = await load_directory(session, chat_id=chat_db.id)
    try:
        cmd = parse_resplit_args(command.args)
        policy, participant_ids = build_policy(
            cmd,
            ids_by_username=directory.ids_by_username,
            all_member_ids=directory.ids,
            currency=expense.currency,
        )
        shares = await replace_expense_split(
            session,
            chat_id=chat_db.id,
            expense_id=expense.id,
            policy=policy,
            participant_member_ids=participant_ids,
        )
    except ValueError as e:
        await reply_temporary(message, bot, render_error(e), ttl_seconds=reply_ttl)
        return

    await reply_temporary(
        message,
        bot,
        render_expense(expense.total, shares, directory.by_id, payer_id=member_db.id),
        ttl_seconds=reply_ttl,
        reply_markup=close_keyboard(initiator_user_id=message.from_user.id),
    )


@router.message(Command("recent"))
async def recent_cmd(message: Message, bot: Bot, session: AsyncSession, chat_db: Chat, reply_ttl: float) -> None:
    if not is_group_chat(message):
        return

    expenses = await get_last_expenses(session, chat_id=chat_db.id, limit=10)
    directory = await load_directory(session, chat_id=chat_db.id)
    await reply_temporary(
        message,
        bot,
        render_recent(expenses, directory.by_id),
        ttl_seconds=reply_ttl,
        reply_markup=close_keyboard(initiator_user_id=message.from_user.id),
    )
