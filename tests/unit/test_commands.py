import html
from decimal import Decimal

import pytest

from expense_ledger.bot.commands import (
    CommandError,
    MemberRef,
    build_policy,
    parse_amount,
    parse_expense_args,
    parse_paid_args,
    parse_resplit_args,
)
from expense_ledger.bot.text import HELP_TEXT, render_error
from expense_ledger.core.money import Money
from expense_ledger.core.splits import EqualSplit, ExactSplit, PercentageSplit, ShareMode, WeightedSplit

IDS = {"ann": 1, "bob": 2, "cid": 3}
ALL = [1, 2, 3]


class TestParseAmount:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("12", "12"),
            ("12.50", "12.50"),
            ("12,50", "12.50"),
            ("1,5", "1.5"),
            ("1,000", "1000"),
            ("12,345,678", "12345678"),
            ("1,000.25", "1000.25"),
        ],
    )
    def test_formats(self, text: str, expected: str) -> None:
        assert parse_amount(text) == Decimal(expected)

    @pytest.mark.parametrize("text", ["abc", "NaN", "inf", "", "1,2345", "1,000,00", "12,5,0", "1,"])
    def test_rejects(self, text: str) -> None:
        with pytest.raises(CommandError):
            parse_amount(text)


class TestParseExpense:
    def test_amount_only(self) -> None:
        cmd = parse_expense_args("90")
        assert cmd.amount == Decimal(90)
        assert cmd.mode is ShareMode.EQUAL
        assert cmd.refs == ()
        assert cmd.note is None

    def test_equal_listed(self) -> None:
        cmd = parse_expense_args("90 @Ann @bob")
        assert cmd.refs == (MemberRef("ann"), MemberRef("bob"))

    def test_except(self) -> None:
        cmd = parse_expense_args("90 except @cid")
        assert cmd.exclude
        assert cmd.mode is ShareMode.EQUAL

    def test_weight_with_note(self) -> None:
        cmd = parse_expense_args("90 weight @ann=2 @bob=1 -- taxi to the airport")
        assert cmd.mode is ShareMode.WEIGHT
        assert cmd.refs == (MemberRef("ann", Decimal(2)), MemberRef("bob", Decimal(1)))
        assert cmd.note == "taxi to the airport"

    def test_percent_symbol(self) -> None:
        assert parse_expense_args("10 % @ann=50 @bob=50").mode is ShareMode.PERCENT

    @pytest.mark.parametrize(
        "args",
        [
            None,
            "",
            "-- only a note",
            "0",
            "-5",
            "90 sideways @ann",
            "90 exact @ann",
            "90 exact",
            "90 equal @ann=3",
            "90 except",
            "90 @ann @ann",
            "90 ann",
        ],
    )
    def test_invalid(self, args) -> None:
        with pytest.raises(CommandError):
            parse_expense_args(args)


class TestParseResplit:
    def test_listed_equal(self) -> None:
        cmd = parse_resplit_args("@ann @bob")
        assert cmd.mode is ShareMode.EQUAL
        assert [r.username for r in cmd.refs] == ["ann", "bob"]
        assert cmd.exclude is False

    def test_weight(self) -> None:
        cmd = parse_resplit_args("weight @ann=2 @bob=1")
        assert cmd.mode is ShareMode.WEIGHT
        assert cmd.refs == (MemberRef("ann", Decimal("2")), MemberRef("bob", Decimal("1")))

    def test_feeds_build_policy(self) -> None:
        policy, ids = build_policy(parse_resplit_args("except @cid"), ids_by_username=IDS, all_member_ids=ALL, currency="USD")
        assert policy == EqualSplit(excluded=frozenset({3}))
        assert ids == ALL

    @pytest.mark.parametrize("args", [None, "", "90", "exact @ann", "except"])
    def test_invalid(self, args) -> None:
        with pytest.raises(CommandError):
            parse_resplit_args(args)


class TestParsePaid:
    def test_basic(self) -> None:
        cmd = parse_paid_args("@Ann 30.50 for dinner")
        assert cmd.username == "ann"
        assert cmd.amount == Decimal("30.50")
        assert cmd.note == "for dinner"

    @pytest.mark.parametrize("args", [None, "@ann", "30 @ann", "@ann=3 30", "@ann -1"])
    def test_invalid(self, args) -> None:
        with pytest.raises(CommandError):
            parse_paid_args(args)


class TestBuildPolicy:
    def test_default_everyone(self) -> None:
        policy, people = build_policy(parse_expense_args("90"), ids_by_username=IDS, all_member_ids=ALL, currency="USD")
        assert policy == EqualSplit()
        assert people == ALL

    def test_listed_order_kept(self) -> None:
        _, people = build_policy(parse_expense_args("90 @cid @ann"), ids_by_username=IDS, all_member_ids=ALL, currency="USD")
        assert people == [3, 1]

    def test_except(self) -> None:
        policy, people = build_policy(
            parse_expense_args("90 except @bob"), ids_by_username=IDS, all_member_ids=ALL, currency="USD"
        )
        assert policy == EqualSplit(excluded=frozenset({2}))
        assert people == ALL

    def test_exact_to_money(self) -> None:
        policy, people = build_policy(
            parse_expense_args("90 exact @ann=60 @bob=30"), ids_by_username=IDS, all_member_ids=ALL, currency="USD"
        )
        assert isinstance(policy, ExactSplit)
        assert policy.values == {1: Money(6000, "USD"), 2: Money(3000, "USD")}
        assert people == [1, 2]

    def test_percent_and_weight(self) -> None:
        pct, _ = build_policy(
            parse_expense_args("90 percent @ann=50 @bob=50"), ids_by_username=IDS, all_member_ids=ALL, currency="USD"
        )
        assert isinstance(pct, PercentageSplit)
        weight, _ = build_policy(
            parse_expense_args("90 weight @ann=2 @cid=1"), ids_by_username=IDS, all_member_ids=ALL, currency="USD"
        )
        assert isinstance(weight, WeightedSplit)
        assert weight.values == {1: Decimal(2), 3: Decimal(1)}

    def test_unknown_username(self) -> None:
        with pytest.raises(CommandError, match="@zed"):
            build_policy(parse_expense_args("90 @zed"), ids_by_username=IDS, all_member_ids=ALL, currency="USD")


class TestErrorReplies:
    @pytest.mark.parametrize(
        "parse,args",
        [
            (parse_expense_args, None),
            (parse_expense_args, "<b>90"),
            (parse_expense_args, "90 @ann=<i>"),
            (parse_expense_args, "90 <script>"),
            (parse_paid_args, None),
            (parse_resplit_args, ""),
        ],
    )
    def test_rendered_errors_are_html_safe(self, parse, args) -> None:
        with pytest.raises(CommandError) as excinfo:
            parse(args)
        text = render_error(excinfo.value)
        assert "<" not in text and ">" not in text
        assert html.unescape(text) == str(excinfo.value)

    def test_help_uses_plain_punctuation(self) -> None:
        assert "—" not in HELP_TEXT
        assert "/expense 90: you paid 90" in HELP_TEXT
