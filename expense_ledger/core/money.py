from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import total_ordering
from typing import Union

from expense_ledger.core.errors import CurrencyMismatch

DecimalLike = Union[Decimal, int, str, float]

# Fractional digits per ISO code. Anything not listed uses DEFAULT_EXPONENT.
CURRENCY_EXPONENTS: dict[str, int] = {
    "USD": 2,
    "EUR": 2,
    "GBP": 2,
    "JPY": 0,
    "CAD": 2,
    "AUD": 2,
    "CHF": 2,
    "CNY": 2,
}
DEFAULT_EXPONENT = 2

_CODE_RE = re.compile(r"^[A-Z]{3}$")


def currency_exponent(currency: str) -> int:
    return CURRENCY_EXPONENTS.get(currency, DEFAULT_EXPONENT)


def to_decimal(value: DecimalLike) -> Decimal:
    # floats go through str() so 33.33 stays 33.33 and not its binary expansion
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    try:
        return Decimal(value)
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}") from None


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@total_ordering
@dataclass(frozen=True)
class Money:
    """Amount in integer minor units of a single currency."""

    amount: int
    currency: str

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValueError(f"Money amount must be an integer number of minor units, got {self.amount!r}")
        if not isinstance(self.currency, str) or not _CODE_RE.match(self.currency):
            raise ValueError(f"Currency must be a 3-letter upper-case code, got {self.currency!r}")

    @classmethod
    def zero(cls, currency: str) -> Money:
        return cls(0, currency)

    @classmethod
    def from_decimal(cls, value: DecimalLike, currency: str) -> Money:
        """Build from a major-unit value, e.g. ``Money.from_decimal("12.50", "USD")``.

        Raises ValueError if the value carries more fractional digits than the
        currency has.
        """
        dec = to_decimal(value)
        if not dec.is_finite():
            raise ValueError(f"Not a finite amount: {value!r}")
        scaled = dec.scaleb(currency_exponent(currency))
        if scaled != scaled.to_integral_value():
            raise ValueError(
                f"Amount {value} has more than {currency_exponent(currency)} decimal places for {currency}"
            )
        return cls(int(scaled), currency)

    @classmethod
    def total(cls, values: Iterable[Money], currency: str) -> Money:
        acc = cls.zero(currency)
        for v in values:
            acc = acc + v
        return acc

    def to_decimal(self) -> Decimal:
        return Decimal(self.amount).scaleb(-currency_exponent(self.currency))

    def is_zero(self) -> bool:
        return self.amount == 0

    def _check(self, other: Money) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatch(self.currency, other.currency)

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> Money:
        return Money(-self.amount, self.currency)

    def __abs__(self) -> Money:
        return Money(abs(self.amount), self.currency)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other)
        return self.amount < other.amount

    def __str__(self) -> str:
        exp = currency_exponent(self.currency)
        return f"{self.to_decimal():.{exp}f} {self.currency}"
