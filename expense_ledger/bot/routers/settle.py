from __future__ import annotations

from aiogram import Bot, Router
from aiogram.enums import ParseMode
from aiogram.filters import Command, CommandObject
from aiogram.types import CallbackQuery, Message
from sqlalchemy.ext.asyncio import AsyncSession

from expense_ledger.bot.callbacks import SettlementAction, SettlementCb
from expense_ledger.bot.commands import parse_paid_args
from expense_ledger.bot.keyboards import settlement_keyboard
from expense_ledger.bot.text import esc, format_money, member_label, render_error
from expense_ledger.bot.utils import is_group_chat, reply_temporary
from expense_ledger.core.money import Money
from expense_ledger.db.models import Chat, Member, SettlementStatus
from expense_ledger.services.members import get_member_by_username
from expense_ledger.services.settlements import (
    cancel_settlement,
    confirm_settlement,
    create_settlement,
    reject_settlement,
)

router = Router(name=__name__)

_ACTIONS = {
    SettlementAction.CONFIRM: confirm_settlement,
    SettlementAction.REJECT: reject_settlement,
    SettlementAction.CANCEL: cancel_settlement,
}

_OUTCOME = {
    SettlementStatus.CONFIRMED: "confirmed",
    SettlementStatus.REJECTED: "rejected",
    SettlementStatus.CANCELLED: "withdrawn",
}


@router.message(Command("paid"))
async def paid_cmd(
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
    try:
        cmd = parse_paid_args(command.args)
        payee = await get_member_by_username(session, chat_id=chat_db.id, username=cmd.username)
        if payee is None:
            raise ValueError(f"@{cmd.username} is not known here yet; they need to write in this group first.")
        settlement = await create_settlement(
            session,
            chat_id=chat_db.id,
            payer_member_id=member_db.id,
            payee_member_id=payee.id,
            amount=Money.from_decimal(cmd.amount, chat_db.currency),
            note=cmd.note,
        )
    except ValueError as e:
        await reply_temporary(message, bot, render_error(e), ttl_seconds=reply_ttl)
        return

    await message.answer(
        f"{esc(member_label(member_db))} says they paid {esc(member_label(payee))} "
        f"<b>{format_money(settlement.amount)}</b>.\n"
        f"{esc(member_label(payee))}, did you receive it?",
        parse_mode=ParseMode.HTML,
        reply_markup=settlement_keyboard(settlement_id=settlement.id),
    )


@router.callback_query(SettlementCb.filter())
async def settlement_cb(
    callback: CallbackQuery,
    callback_data: SettlementCb,
    session: AsyncSession,
    chat_db: Chat,
    member_db: Member,
) -> None:
    action = _ACTIONS[callback_data.action]
    try:
        settlement = await action(
            session,
            chat_id=chat_db.id,
            settlement_id=callback_data.settlement_id,
            actor_member_id=member_db.id,
        )
    except (ValueError, PermissionError) as e:
        await callback.answer(str(e), show_alert=True)
        return

    if callback.message:
        await callback.message.edit_text(
            f"Payment of <b>{format_money(settlement.amount)}</b> {_OUTCOME[settlement.status]}.",
            parse_mode=ParseMode.HTML,
        )
    await callback.answer()
