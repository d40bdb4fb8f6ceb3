from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Optional

from aiogram import BaseMiddleware
from aiogram.types import CallbackQuery, Chat, Message, TelegramObject, User
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from expense_ledger.services.members import ensure_chat, upsert_member

logger = logging.getLogger(__name__)

Handler = Callable[[TelegramObject, dict[str, Any]], Awaitable[Any]]


class DbSessionMiddleware(BaseMiddleware):
    """Runs each update in a single transaction: an expense, its shares and payers land together."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        super().__init__()
        self._sessionmaker = sessionmaker

    async def __call__(self, handler: Handler, event: TelegramObject, data: dict[str, Any]) -> Any:
        async with self._sessionmaker() as session:
            data["session"] = session
            try:
                result = await handler(event, data)
            except Exception:
                await session.rollback()
                raise
            await session.commit()
            return result


def _origin(event: TelegramObject) -> Optional[tuple[Chat, User]]:
    if isinstance(event, Message):
        if event.sender_chat is not None:
            return None
        chat, user = event.chat, event.from_user
    elif isinstance(event, CallbackQuery) and event.message:
        chat, user = event.message.chat, event.from_user
    else:
        return None
    if user is None or user.is_bot:
        return None
    return chat, user


class UpsertChatMemberMiddleware(BaseMiddleware):
    """Registers the group and the sender as ledger members before a handler runs.

    Anonymous admins, channels and bots are never registered.
    """

    def __init__(self, *, default_currency: str) -> None:
        super().__init__()
        self._default_currency = default_currency

    async def __call__(self, handler: Handler, event: TelegramObject, data: dict[str, Any]) -> Any:
        origin = _origin(event)
        if origin is None:
            return await handler(event, data)

        tg_chat, tg_user = origin
        session: AsyncSession = data["session"]
        chat_db = await ensure_chat(session, tg_chat=tg_chat, currency=self._default_currency)
        member_db = await upsert_member(session, chat=chat_db, user=tg_user)
        logger.debug("Update from member %s in chat %s (%s)", member_db.id, chat_db.id, chat_db.currency)
        data["chat_db"] = chat_db
        data["member_db"] = member_db
        return await handler(event, data)
