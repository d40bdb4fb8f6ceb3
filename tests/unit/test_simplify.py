import pytest

from expense_ledger.core.balances import NetBalance, Transfer
from expense_ledger.core.errors import SimplificationError, UnbalancedLedger
from expense_ledger.core.money import Money
from expense_ledger.core.simplify import SETTLED_TOLERANCE, settled_tolerance_units, simplify


def balances(currency: str = "USD", **units: int) -> list[NetBalance]:
    return [NetBalance(p, Money(u, currency)) for p, u in units.items()]


def usd(units: int) -> Money:
    return Money(units, "USD")


class TestScenarios:
    def test_one_debtor_two_creditors(self) -> None:
        transfers = simplify(balances(A=6000, B=4000, C=-10000))
        assert transfers == [
            Transfer("C", "A", usd(6000)),
            Transfer("C", "B", usd(4000)),
        ]

    def test_independent_pairs(self) -> None:
        transfers = simplify(balances(A=5000, B=-5000, C=5000, D=-5000))
        assert transfers == [
            Transfer("B", "A", usd(5000)),
            Transfer("D", "C", usd(5000)),
        ]
        assert sum(t.amount.amount for t in transfers) == 10000

    def test_all_zero(self) -> None:
        assert simplify(balances(A=0, B=0, C=0)) == []

    def test_empty(self) -> None:
        assert simplify([]) == []


class TestGreedyOrder:
    def test_largest_first_with_reinsertion(self) -> None:
        # C still owes 20 after paying A, so it stays ahead of B for the next round.
        transfers = simplify(balances(A=5000, E=3500, B=-1500, C=-7000))
        assert transfers == [
            Transfer("C", "A", usd(5000)),
            Transfer("C", "E", usd(2000)),
            Transfer("B", "E", usd(1500)),
        ]

    def test_ties_broken_by_participant(self) -> None:
        transfers = simplify(balances(Z=100, Y=100, X=-200))
        assert transfers == [Transfer("X", "Y", usd(100)), Transfer("X", "Z", usd(100))]

    def test_integer_participants(self) -> None:
        transfers = simplify(
            [NetBalance(3, usd(-300)), NetBalance(1, usd(100)), NetBalance(2, usd(200))]
        )
        assert transfers == [Transfer(3, 2, usd(200)), Transfer(3, 1, usd(100))]

    def test_duplicate_participants_merged(self) -> None:
        transfers = simplify([NetBalance("A", usd(300)), NetBalance("A", usd(200)), NetBalance("B", usd(-500))])
        assert transfers == [Transfer("B", "A", usd(500))]


class TestTolerance:
    def test_constant(self) -> None:
        assert SETTLED_TOLERANCE == pytest.approx(0.01)
        assert settled_tolerance_units("USD") == 1
        assert settled_tolerance_units("JPY") == 0

    def test_dust_is_settled(self) -> None:
        assert simplify(balances(A=1, B=-1)) == []

    def test_dust_debts_are_not_collected(self) -> None:
        # 0.03 split four ways and paid by A: B and C each owe one cent, below tolerance.
        assert simplify(balances(A=2, B=-1, C=-1, D=0)) == []

    def test_dust_remainders_are_dropped(self) -> None:
        transfers = simplify(balances(A=3, B=3, C=-2, D=-2, E=-2))
        assert transfers == [Transfer("C", "A", usd(2)), Transfer("D", "B", usd(2))]

    def test_rounding_slack_accepted(self) -> None:
        # sum is +2 over three balances: within slack
        transfers = simplify(balances(A=3334, B=3334, C=-6666))
        assert [t.amount.amount for t in transfers] == [3334, 3332]

    def test_unbalanced(self) -> None:
        with pytest.raises(UnbalancedLedger) as exc:
            simplify(balances(A=1000, B=-500))
        assert exc.value.total == usd(500)
        assert isinstance(exc.value, SimplificationError)

    def test_jpy_has_no_dust(self) -> None:
        transfers = simplify(balances("JPY", A=1, B=-1))
        assert transfers == [Transfer("B", "A", Money(1, "JPY"))]
