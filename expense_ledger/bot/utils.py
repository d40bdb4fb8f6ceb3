from __future__ import annotations

import asyncio
import logging
from typing import Optional

from aiogram import Bot
from aiogram.enums import ChatType, ParseMode
from aiogram.exceptions import TelegramBadRequest, TelegramForbiddenError
from aiogram.types import InlineKeyboardMarkup, Message

logger = logging.getLogger(__name__)

# Strong references to scheduled deletions; the event loop only keeps weak ones.
_pending: set[asyncio.Task[None]] = set()


def is_group_chat(message: Message) -> bool:
    return message.chat.type in (ChatType.GROUP, ChatType.SUPERGROUP)


async def safe_delete_message(bot: Bot, *, chat_id: int, message_id: int) -> bool:
    try:
        await bot.delete_message(chat_id=chat_id, message_id=message_id)
        return True
    except (TelegramBadRequest, TelegramForbiddenError) as e:
        logger.debug("Could not delete message %s in chat %s: %s", message_id, chat_id, e)
        return False


def delete_later(bot: Bot, *, chat_id: int, message_id: int, delay_seconds: float) -> None:
    if delay_seconds <= 0:
        return

    async def _job() -> None:
        await asyncio.sleep(delay_seconds)
        await safe_delete_message(bot, chat_id=chat_id, message_id=message_id)

    task = asyncio.create_task(_job())
    _pending.add(task)
    task.add_done_callback(_pending.discard)


async def reply_temporary(
    message: Message,
    bot: Bot,
    text: str,
    *,
    ttl_seconds: float,
    reply_markup: Optional[InlineKeyboardMarkup] = None,
) -> Message:
    msg = await message.answer(text, parse_mode=ParseMode.HTML, reply_markup=reply_markup)
    delete_later(bot, chat_id=msg.chat.id, message_id=msg.message_id, delay_seconds=ttl_seconds)
    return msg
