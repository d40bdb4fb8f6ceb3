"""Argument parsing for chat commands.

    /expense 90                      equal split among all known members
    /expense 90 equal @ann @bob      equal split among the listed members
    /expense 90 except @cid          equal split among everyone but @cid
    /expense 90 exact @ann=60 @bob=30
    /expense 90 percent @ann=50 @bob=50
    /expense 90 weight @ann=2 @bob=1 -- taxi from the airport
    /resplit weight @ann=2 @bob=1   new split for your last expense
    /paid @ann 30.50 [note]
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from expense_ledger.core.money import Money
from expense_ledger.core.splits import EqualSplit, ExactSplit, PercentageSplit, ShareMode, SplitPolicy, WeightedSplit


class CommandError(ValueError):
    pass


MODE_WORDS: dict[str, ShareMode] = {
    "equal": ShareMode.EQUAL,
    "except": ShareMode.EQUAL,
    "exact": ShareMode.EXACT,
    "percent": ShareMode.PERCENT,
    "%": ShareMode.PERCENT,
    "weight": ShareMode.WEIGHT,
}

EXPENSE_USAGE = "Usage: /expense <amount> [equal|except|exact|percent|weight] [@user[=value] ...] [-- note]"
RESPLIT_USAGE = "Usage: /resplit [equal|except|exact|percent|weight] [@user[=value] ...]"
PAID_USAGE = "Usage: /paid @user <amount> [note]"

_REF_RE = re.compile(r"^@([A-Za-z0-9_]{1,64})(?:=(\S+))?$")
# 1,000 and 12,345.50 group thousands; 12,5 and 12,50 use a decimal comma.
_THOUSANDS_RE = re.compile(r"^[+-]?\d{1,3}(?:,\d{3})+(?:\.\d+)?$")
_DECIMAL_COMMA_RE = re.compile(r"^[+-]?\d+,\d{1,2}$")


@dataclass(frozen=True)
class MemberRef:
    username: str
    value: Optional[Decimal] = None


@dataclass(frozen=True)
class SplitCommand:
    mode: ShareMode
    refs: tuple[MemberRef, ...]
    exclude: bool = False


@dataclass(frozen=True)
class ExpenseCommand:
    amount: Decimal
    mode: ShareMode
    refs: tuple[MemberRef, ...]
    exclude: bool = False
    note: Optional[str] = None


@dataclass(frozen=True)
class PaidCommand:
    username: str
    amount: Decimal
    note: Optional[str] = None


def parse_amount(text: str) -> Decimal:
    s = text.strip()
    if "," in s:
        if _THOUSANDS_RE.match(s):
            s = s.replace(",", "")
        elif _DECIMAL_COMMA_RE.match(s):
            s = s.replace(",", ".")
        else:
            raise CommandError(f"Not an amount: {text}")
    try:
        value = Decimal(s)
    except InvalidOperation:
        raise CommandError(f"Not an amount: {text}") from None
    if not value.is_finite():
        raise CommandError(f"Not an amount: {text}")
    return value


def _parse_ref(token: str) -> MemberRef:
    m = _REF_RE.match(token)
    if m is None:
        raise CommandError(f"Expected @username or @username=value, got {token}")
    username, raw = m.group(1).lower(), m.group(2)
    return MemberRef(username=username, value=parse_amount(raw) if raw is not None else None)


def parse_expense_args(args: Optional[str]) -> ExpenseCommand:
    body, _, note = (args or "").partition("--")
    tokens = body.split()
    if not tokens:
        raise CommandError(EXPENSE_USAGE)

    amount = parse_amount(tokens[0])
    if amount <= 0:
        raise CommandError("Amount must be positive.")

    split = _parse_split(tokens[1:])
    return ExpenseCommand(
        amount=amount,
        mode=split.mode,
        refs=split.refs,
        exclude=split.exclude,
        note=note.strip() or None,
    )


def parse_resplit_args(args: Optional[str]) -> SplitCommand:
    tokens = (args or "").split()
    if not tokens:
        raise CommandError(RESPLIT_USAGE)
    return _parse_split(tokens)


def _parse_split(rest: list[str]) -> SplitCommand:
    word = "equal"
    if rest and not rest[0].startswith("@"):
        word = rest[0].lower()
        if word not in MODE_WORDS:
            raise CommandError(f"Unknown split mode: {rest[0]}")
        rest = rest[1:]
    mode = MODE_WORDS[word]

    refs = tuple(_parse_ref(t) for t in rest)
    if len({r.username for r in refs}) != len(refs):
        raise CommandError("Each member may be listed only once.")

    if mode is ShareMode.EQUAL:
        if any(r.value is not None for r in refs):
            raise CommandError("Equal splits take plain @usernames without values.")
        if word == "except" and not refs:
            raise CommandError("List who to leave out: except @user")
    elif not refs or any(r.value is None for r in refs):
        raise CommandError(f"{word} splits need a value for every member: @user=value")

    return SplitCommand(mode=mode, refs=refs, exclude=(word == "except"))


def parse_paid_args(args: Optional[str]) -> PaidCommand:
    tokens = (args or "").split(maxsplit=2)
    if len(tokens) < 2 or not tokens[0].startswith("@"):
        raise CommandError(PAID_USAGE)
    ref = _parse_ref(tokens[0])
    if ref.value is not None:
        raise CommandError(PAID_USAGE)
    amount = parse_amount(tokens[1])
    if amount <= 0:
        raise CommandError("Amount must be positive.")
    return PaidCommand(username=ref.username, amount=amount, note=tokens[2].strip() if len(tokens) > 2 else None)


def build_policy(
    cmd: Union[ExpenseCommand, SplitCommand],
    *,
    ids_by_username: Mapping[str, int],
    all_member_ids: Sequence[int],
    currency: str,
) -> tuple[SplitPolicy, list[int]]:
    """Turn a parsed command into a split policy and the ordered participant list."""
    ids: list[int] = []
    for ref in cmd.refs:
        member_id = ids_by_username.get(ref.username)
        if member_id is None:
            raise CommandError(f"@{ref.username} is not known here yet; they need to write in this group first.")
        ids.append(member_id)

    if cmd.mode is ShareMode.EQUAL:
        if cmd.exclude:
            return EqualSplit(excluded=frozenset(ids)), list(all_member_ids)
        return EqualSplit(), ids or list(all_member_ids)

    values = {member_id: ref.value for member_id, ref in zip(ids, cmd.refs)}
    if cmd.mode is ShareMode.EXACT:
        return ExactSplit({k: Money.from_decimal(v, currency) for k, v in values.items()}), ids
    if cmd.mode is ShareMode.PERCENT:
        return PercentageSplit(values), ids
    return WeightedSplit(values), ids
