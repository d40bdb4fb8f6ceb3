from __future__ import annotations

import enum

from aiogram.filters.callback_data import CallbackData


class SettlementAction(str, enum.Enum):
    CONFIRM = "confirm"
    REJECT = "reject"
    CANCEL = "cancel"


class CloseCb(CallbackData, prefix="close"):
    initiator: int


class SettlementCb(CallbackData, prefix="settle"):
    settlement_id: int
    action: SettlementAction
