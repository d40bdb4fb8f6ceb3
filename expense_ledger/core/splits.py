"""Expense total + split policy -> exact per-participant shares.

Every policy returns shares whose amounts add up to the total exactly, in
minor units. Rounding residue always lands on a participant chosen by the
caller-supplied order, so the same inputs always produce the same shares.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Hashable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Union

from expense_ledger.core.errors import (
    AmountMismatch,
    CurrencyMismatch,
    InvalidPercentage,
    NegativeWeight,
    NoParticipants,
    PercentageMismatch,
    UnknownParticipant,
    ZeroTotalWeight,
)
from expense_ledger.core.money import DecimalLike, Money, round_half_up, to_decimal

if TYPE_CHECKING:
    from expense_ledger.core.balances import Payment

logger = logging.getLogger(__name__)

Participant = Hashable

HUNDRED = Decimal(100)
PERCENT_TOLERANCE = Decimal("0.01")


class ShareMode(str, enum.Enum):
    EQUAL = "EQUAL"
    EXACT = "EXACT"
    PERCENT = "PERCENT"
    WEIGHT = "WEIGHT"


def _decimal_map(values: Mapping[Participant, DecimalLike]) -> dict[Participant, Decimal]:
    return {k: to_decimal(v) for k, v in values.items()}


@dataclass(frozen=True)
class EqualSplit:
    excluded: frozenset = field(default_factory=frozenset)
    mode = ShareMode.EQUAL

    def __post_init__(self) -> None:
        object.__setattr__(self, "excluded", frozenset(self.excluded))


@dataclass(frozen=True)
class ExactSplit:
    values: Mapping[Participant, Money]
    mode = ShareMode.EXACT

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", dict(self.values))


@dataclass(frozen=True)
class PercentageSplit:
    values: Mapping[Participant, Decimal]
    mode = ShareMode.PERCENT

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", _decimal_map(self.values))


@dataclass(frozen=True)
class WeightedSplit:
    values: Mapping[Participant, Decimal]
    mode = ShareMode.WEIGHT

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", _decimal_map(self.values))


SplitPolicy = Union[EqualSplit, ExactSplit, PercentageSplit, WeightedSplit]


@dataclass(frozen=True)
class Share:
    participant: Participant
    amount: Money
    mode: ShareMode
    ratio: Optional[Decimal] = None  # percentage or weight, kept for audit


def calculate(total: Money, policy: SplitPolicy, participants: Sequence[Participant]) -> list[Share]:
    ordered = list(dict.fromkeys(participants))
    if not ordered:
        raise NoParticipants()

    if isinstance(policy, EqualSplit):
        shares = _equal(total, policy, ordered)
    elif isinstance(policy, ExactSplit):
        shares = _exact(total, policy, ordered)
    elif isinstance(policy, PercentageSplit):
        shares = _percentage(total, policy, ordered)
    elif isinstance(policy, WeightedSplit):
        shares = _weighted(total, policy, ordered)
    else:
        raise TypeError(f"Unsupported split policy: {type(policy).__name__}")

    logger.debug("Split %s %s between %d participants", total, policy.mode.value, len(shares))
    return shares


def _restrict(ordered: list[Participant], values: Mapping[Participant, object]) -> list[Participant]:
    known = set(ordered)
    for p in values:
        if p not in known:
            raise UnknownParticipant(p)
    out = [p for p in ordered if p in values]
    if not out:
        raise NoParticipants()
    return out


def _equal(total: Money, policy: EqualSplit, ordered: list[Participant]) -> list[Share]:
    members = [p for p in ordered if p not in policy.excluded]
    if not members:
        raise NoParticipants()
    n = len(members)
    base = total.amount // n
    rem = total.amount - base * n  # 0 <= rem < n
    # One extra unit each to the first rem participants; for rem <= 1 this is
    # the same as giving the whole remainder to the first participant.
    return [
        Share(participant=p, amount=Money(base + (1 if i < rem else 0), total.currency), mode=ShareMode.EQUAL)
        for i, p in enumerate(members)
    ]


def _exact(total: Money, policy: ExactSplit, ordered: list[Participant]) -> list[Share]:
    members = _restrict(ordered, policy.values)
    for p in members:
        if policy.values[p].currency != total.currency:
            raise CurrencyMismatch(total.currency, policy.values[p].currency)
    actual = Money.total((policy.values[p] for p in members), total.currency)
    if actual != total:
        raise AmountMismatch(total, actual)
    return [Share(participant=p, amount=policy.values[p], mode=ShareMode.EXACT) for p in members]


def _percentage(total: Money, policy: PercentageSplit, ordered: list[Participant]) -> list[Share]:
    members = _restrict(ordered, policy.values)
    for p in members:
        pct = policy.values[p]
        if pct < 0 or pct > HUNDRED:
            raise InvalidPercentage(p, pct)
    pct_sum = sum((policy.values[p] for p in members), Decimal(0))
    if abs(pct_sum - HUNDRED) > PERCENT_TOLERANCE:
        raise PercentageMismatch(HUNDRED, pct_sum)
    return _absorb_residual(total, members, policy.values, HUNDRED, ShareMode.PERCENT)


def _weighted(total: Money, policy: WeightedSplit, ordered: list[Participant]) -> list[Share]:
    members = _restrict(ordered, policy.values)
    for p in members:
        if policy.values[p] < 0:
            raise NegativeWeight(p, policy.values[p])
    weight_sum = sum((policy.values[p] for p in members), Decimal(0))
    if weight_sum == 0:
        raise ZeroTotalWeight()
    return _absorb_residual(total, members, policy.values, weight_sum, ShareMode.WEIGHT)


def _absorb_residual(
    total: Money,
    members: list[Participant],
    ratios: Mapping[Participant, Decimal],
    denominator: Decimal,
    mode: ShareMode,
) -> list[Share]:
    # Everyone but the last is rounded half-up; the last takes what is left.
    out: list[Share] = []
    assigned = 0
    for p in members[:-1]:
        units = round_half_up(Decimal(total.amount) * ratios[p] / denominator)
        assigned += units
        out.append(Share(participant=p, amount=Money(units, total.currency), mode=mode, ratio=ratios[p]))
    last = members[-1]
    out.append(
        Share(participant=last, amount=Money(total.amount - assigned, total.currency), mode=mode, ratio=ratios[last])
    )
    return out


def validate_payments(total: Money, payments: Iterable[Payment]) -> None:
    """Payer amounts of one expense must cover its total exactly."""
    paid = Money.zero(total.currency)
    for payment in payments:
        if payment.amount.currency != total.currency:
            raise CurrencyMismatch(total.currency, payment.amount.currency)
        paid = paid + payment.amount
    if paid != total:
        raise AmountMismatch(total, paid)
