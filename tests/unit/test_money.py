from decimal import Decimal

import pytest

from expense_ledger.core.errors import CurrencyMismatch, LedgerError
from expense_ledger.core.money import Money, currency_exponent


class TestConstruction:
    def test_from_decimal_usd(self) -> None:
        assert Money.from_decimal("12.50", "USD") == Money(1250, "USD")
        assert Money.from_decimal(Decimal("0.01"), "USD") == Money(1, "USD")
        assert Money.from_decimal(100, "USD") == Money(10000, "USD")

    def test_from_decimal_float_uses_decimal_repr(self) -> None:
        assert Money.from_decimal(33.33, "USD") == Money(3333, "USD")

    def test_from_decimal_zero_exponent_currency(self) -> None:
        assert currency_exponent("JPY") == 0
        assert Money.from_decimal("1500", "JPY") == Money(1500, "JPY")

    def test_too_many_decimal_places_rejected(self) -> None:
        with pytest.raises(ValueError, match="decimal places"):
            Money.from_decimal("1.005", "USD")
        with pytest.raises(ValueError):
            Money.from_decimal("1.5", "JPY")

    def test_garbage_rejected(self) -> None:
        with pytest.raises(ValueError):
            Money.from_decimal("abc", "USD")

    def test_unknown_currency_defaults_to_two_places(self) -> None:
        assert Money.from_decimal("1.23", "SEK") == Money(123, "SEK")

    @pytest.mark.parametrize("code", ["usd", "US", "USDT", "", "1AB"])
    def test_bad_currency_code(self, code: str) -> None:
        with pytest.raises(ValueError):
            Money(1, code)

    def test_amount_must_be_int(self) -> None:
        with pytest.raises(ValueError):
            Money(1.5, "USD")  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            Money(True, "USD")  # type: ignore[arg-type]


class TestArithmetic:
    def test_add_sub_neg_abs(self) -> None:
        a = Money(1000, "USD")
        b = Money(250, "USD")
        assert a + b == Money(1250, "USD")
        assert a - b == Money(750, "USD")
        assert -a == Money(-1000, "USD")
        assert abs(Money(-5, "USD")) == Money(5, "USD")

    def test_immutable(self) -> None:
        a = Money(1, "USD")
        with pytest.raises(AttributeError):
            a.amount = 2  # type: ignore[misc]

    def test_currency_mismatch_on_add(self) -> None:
        with pytest.raises(CurrencyMismatch) as exc:
            Money(1, "USD") + Money(1, "EUR")
        assert exc.value.expected == "USD"
        assert exc.value.actual == "EUR"
        assert isinstance(exc.value, LedgerError)

    def test_currency_mismatch_on_compare(self) -> None:
        with pytest.raises(CurrencyMismatch):
            _ = Money(1, "USD") < Money(2, "EUR")

    def test_ordering(self) -> None:
        assert Money(1, "USD") < Money(2, "USD")
        assert Money(2, "USD") >= Money(2, "USD")
        assert max(Money(3, "USD"), Money(7, "USD")) == Money(7, "USD")

    def test_total(self) -> None:
        values = [Money(1, "USD"), Money(2, "USD"), Money(3, "USD")]
        assert Money.total(values, "USD") == Money(6, "USD")
        assert Money.total([], "USD").is_zero()


class TestFormatting:
    def test_str(self) -> None:
        assert str(Money(10000, "USD")) == "100.00 USD"
        assert str(Money(-5, "USD")) == "-0.05 USD"
        assert str(Money(1500, "JPY")) == "1500 JPY"

    def test_to_decimal(self) -> None:
        assert Money(3334, "USD").to_decimal() == Decimal("33.34")
