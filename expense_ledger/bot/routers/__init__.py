from __future__ import annotations

from aiogram import Router

from expense_ledger.bot.routers.expense import router as expense_router
from expense_ledger.bot.routers.public import router as public_router
from expense_ledger.bot.routers.settle import router as settle_router


def all_routers() -> list[Router]:
    return [expense_router, settle_router, public_router]
