from __future__ import annotations

from typing import Callable

from aiogram import Bot, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import CallbackQuery, Message

from expense_ledger.bot.callbacks import CloseCb
from expense_ledger.bot.keyboards import close_keyboard
from expense_ledger.bot.text import HELP_TEXT, render_balances, render_individual, render_transfers
from expense_ledger.bot.utils import is_group_chat, reply_temporary, safe_delete_message
from expense_ledger.db.models import Chat, Member
from expense_ledger.db.session import snapshot_scope
from expense_ledger.services.ledger import GroupBalances, compute_group_balances, individual_balance
from expense_ledger.services.members import load_directory

router = Router(name=__name__)

Render = Callable[[GroupBalances, dict[int, Member]], str]


async def _reply_with_balances(message: Message, bot: Bot, chat_db: Chat, reply_ttl: float, render: Render) -> None:
    if not is_group_chat(message):
        return
    await safe_delete_message(bot, chat_id=message.chat.id, message_id=message.message_id)

    async with snapshot_scope() as snap:
        group = await compute_group_balances(snap, chat_id=chat_db.id, currency=chat_db.currency)
        directory = await load_directory(snap, chat_id=chat_db.id)

    await reply_temporary(
        message,
        bot,
        render(group, directory.by_id),
        ttl_seconds=reply_ttl,
        reply_markup=close_keyboard(initiator_user_id=message.from_user.id),
    )


@router.message(CommandStart())
@router.message(Command("help"))
async def help_cmd(message: Message) -> None:
    await message.answer(HELP_TEXT)


@router.message(Command("balance"))
async def balance_cmd(message: Message, bot: Bot, chat_db: Chat, reply_ttl: float) -> None:
    await _reply_with_balances(message, bot, chat_db, reply_ttl, lambda g, names: render_balances(g.balances, names))


@router.message(Command("settle"))
async def settle_cmd(message: Message, bot: Bot, chat_db: Chat, reply_ttl: float) -> None:
    await _reply_with_balances(message, bot, chat_db, reply_ttl, lambda g, names: render_transfers(g.transfers, names))


@router.message(Command("me"))
async def me_cmd(message: Message, bot: Bot, chat_db: Chat, member_db: Member, reply_ttl: float) -> None:
    def render(group: GroupBalances, names: dict[int, Member]) -> str:
        return render_individual(individual_balance(group, member_db.id), names)

    await _reply_with_balances(message, bot, chat_db, reply_ttl, render)


@router.callback_query(CloseCb.filter())
async def close_cb(callback: CallbackQuery, callback_data: CloseCb) -> None:
    # Only whoever asked for the reply may dismiss it.
    if callback.from_user.id != callback_data.initiator:
        await callback.answer("This button is not for you.", show_alert=True)
        return
    if callback.message:
        await safe_delete_message(callback.bot, chat_id=callback.message.chat.id, message_id=callback.message.message_id)
    await callback.answer()
