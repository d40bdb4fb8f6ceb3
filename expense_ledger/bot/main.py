from __future__ import annotations

import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramUnauthorizedError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from expense_ledger.bot.middlewares import DbSessionMiddleware, UpsertChatMemberMiddleware
from expense_ledger.bot.routers import all_routers
from expense_ledger.config import Settings, settings
from expense_ledger.db.session import SessionMaker
from expense_ledger.logging import configure_logging

logger = logging.getLogger(__name__)


def build_dispatcher(cfg: Settings, sessionmaker: async_sessionmaker[AsyncSession]) -> Dispatcher:
    dp = Dispatcher(reply_ttl=cfg.reply_ttl_seconds)

    # Session first: the member upsert writes through it.
    dp.update.middleware(DbSessionMiddleware(sessionmaker))
    upsert = UpsertChatMemberMiddleware(default_currency=cfg.default_currency)
    dp.message.middleware(upsert)
    dp.callback_query.middleware(upsert)

    dp.include_routers(*all_routers())
    return dp


async def main() -> None:
    configure_logging(settings.log_level)

    bot = Bot(token=settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    try:
        try:
            me = await bot.get_me()
        except TelegramUnauthorizedError:
            logger.exception("Telegram rejected BOT_TOKEN")
            raise

        dp = build_dispatcher(settings, SessionMaker)
        logger.info("Starting bot as @%s, ledger currency %s", me.username, settings.default_currency)
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        await bot.session.close()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
