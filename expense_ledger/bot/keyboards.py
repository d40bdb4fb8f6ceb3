from __future__ import annotations

from aiogram.types import InlineKeyboardMarkup
from aiogram.utils.keyboard import InlineKeyboardBuilder

from expense_ledger.bot.callbacks import CloseCb, SettlementAction, SettlementCb

SETTLEMENT_BUTTONS = {
    SettlementAction.CONFIRM: "Received",
    SettlementAction.REJECT: "Not received",
    SettlementAction.CANCEL: "Withdraw",
}


def close_keyboard(*, initiator_user_id: int, text: str = "Close") -> InlineKeyboardMarkup:
    kb = InlineKeyboardBuilder()
    kb.button(text=text, callback_data=CloseCb(initiator=initiator_user_id))
    return kb.as_markup()


def settlement_keyboard(*, settlement_id: int) -> InlineKeyboardMarkup:
    # Payee answers on the first row, payer may withdraw on the second.
    kb = InlineKeyboardBuilder()
    for action, text in SETTLEMENT_BUTTONS.items():
        kb.button(text=text, callback_data=SettlementCb(settlement_id=settlement_id, action=action))
    kb.adjust(2, 1)
    return kb.as_markup()
