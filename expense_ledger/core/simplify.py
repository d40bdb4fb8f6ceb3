"""Net balances -> a short list of transfers that settles the group.

Greedy: the largest debtor always pays the largest creditor. This is not a
proven minimum, but it is deterministic and never needs more than n - 1
transfers for n unsettled balances.
"""

from __future__ import annotations

import heapq
import logging
from collections.abc import Iterable
from decimal import ROUND_FLOOR, Decimal
from typing import Final

from expense_ledger.core.balances import NetBalance, Transfer
from expense_ledger.core.errors import UnbalancedLedger
from expense_ledger.core.money import Money, currency_exponent
from expense_ledger.core.splits import Participant

logger = logging.getLogger(__name__)

# Anything this close to zero (in major units) counts as settled.
SETTLED_TOLERANCE: Final[Decimal] = Decimal("0.01")


def settled_tolerance_units(currency: str) -> int:
    return int((SETTLED_TOLERANCE.scaleb(currency_exponent(currency))).to_integral_value(rounding=ROUND_FLOOR))


def simplify(balances: Iterable[NetBalance]) -> list[Transfer]:
    balances = list(balances)
    if not balances:
        return []

    currency = balances[0].amount.currency
    total = Money.zero(currency)
    net: dict[Participant, int] = {}
    for b in balances:
        total = total + b.amount
        net[b.participant] = net.get(b.participant, 0) + b.amount.amount

    # Each balance may carry up to one minor unit of upstream rounding slack.
    if abs(total.amount) > len(balances):
        raise UnbalancedLedger(total)

    tol = settled_tolerance_units(currency)

    # Max-heaps keyed by (-remaining, participant): largest first, ties by id ascending.
    debtors: list[tuple[int, Participant]] = []
    creditors: list[tuple[int, Participant]] = []
    for participant, units in net.items():
        if abs(units) <= tol:
            continue
        if units < 0:
            debtors.append((units, participant))
        else:
            creditors.append((-units, participant))
    heapq.heapify(debtors)
    heapq.heapify(creditors)

    transfers: list[Transfer] = []
    while debtors and creditors:
        neg_owe, debtor = heapq.heappop(debtors)
        neg_recv, creditor = heapq.heappop(creditors)
        owe, recv = -neg_owe, -neg_recv

        amount = min(owe, recv)
        transfers.append(Transfer(from_participant=debtor, to_participant=creditor, amount=Money(amount, currency)))
        owe -= amount
        recv -= amount

        if owe > tol:
            heapq.heappush(debtors, (-owe, debtor))
        if recv > tol:
            heapq.heappush(creditors, (-recv, creditor))

    logger.debug("Simplified %d balances into %d transfers", len(net), len(transfers))
    return transfers
