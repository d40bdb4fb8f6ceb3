from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from expense_ledger.core.errors import CurrencyMismatch
from expense_ledger.core.money import Money
from expense_ledger.core.splits import Participant, Share

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Payment:
    payer: Participant
    amount: Money


@dataclass(frozen=True)
class Transfer:
    from_participant: Participant  # debtor / settlement payer
    to_participant: Participant  # creditor / settlement payee
    amount: Money


@dataclass(frozen=True)
class NetBalance:
    participant: Participant
    amount: Money  # positive is owed by the group, negative owes the group
    total_paid: Optional[Money] = None
    total_owed: Optional[Money] = None


class _Ledger:
    def __init__(self, currency: Optional[str]) -> None:
        self.currency = currency
        self.paid: dict[Participant, int] = {}
        self.owed: dict[Participant, int] = {}

    def _units(self, amount: Money) -> int:
        if self.currency is None:
            self.currency = amount.currency
        elif amount.currency != self.currency:
            raise CurrencyMismatch(self.currency, amount.currency)
        return amount.amount

    def _touch(self, participant: Participant) -> None:
        self.paid.setdefault(participant, 0)
        self.owed.setdefault(participant, 0)

    def credit(self, participant: Participant, amount: Money) -> None:
        units = self._units(amount)
        self._touch(participant)
        self.paid[participant] += units

    def debit(self, participant: Participant, amount: Money) -> None:
        units = self._units(amount)
        self._touch(participant)
        self.owed[participant] += units


def aggregate(
    shares: Iterable[Share],
    payments: Iterable[Payment],
    settlements: Iterable[Transfer] = (),
    *,
    currency: Optional[str] = None,
) -> list[NetBalance]:
    ledger = _Ledger(currency)

    for p in payments:
        ledger.credit(p.payer, p.amount)
    for s in shares:
        ledger.debit(s.participant, s.amount)
    # A settlement A -> B: A has paid into the ledger, B has taken out of it.
    for t in settlements:
        ledger.credit(t.from_participant, t.amount)
        ledger.debit(t.to_participant, t.amount)

    if ledger.currency is None:
        return []

    cur = ledger.currency
    out: list[NetBalance] = []
    net_sum = 0
    for participant, paid in ledger.paid.items():
        owed = ledger.owed[participant]
        net_sum += paid - owed
        out.append(
            NetBalance(
                participant=participant,
                amount=Money(paid - owed, cur),
                total_paid=Money(paid, cur),
                total_owed=Money(owed, cur),
            )
        )

    if net_sum != 0:
        logger.warning("Aggregated balances do not net to zero: %s (inputs are not a closed set)", Money(net_sum, cur))
    return out
