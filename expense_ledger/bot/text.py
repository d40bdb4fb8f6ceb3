from __future__ import annotations

import html
from collections.abc import Mapping, Sequence

from expense_ledger.core.balances import NetBalance, Transfer
from expense_ledger.core.money import Money
from expense_ledger.core.splits import Share
from expense_ledger.db.models import Expense, Member
from expense_ledger.services.ledger import IndividualBalance

HELP_TEXT = (
    "<b>Shared expenses</b>\n"
    "/expense 90: you paid 90, split equally between everyone\n"
    "/expense 90 equal @ann @bob: split between the listed members\n"
    "/expense 90 except @cid: everyone but @cid\n"
    "/expense 90 exact @ann=60 @bob=30\n"
    "/expense 90 percent @ann=50 @bob=50\n"
    "/expense 90 weight @ann=2 @bob=1 -- note\n"
    "/resplit percent @ann=70 @bob=30: change how your last expense is split\n"
    "/undo: remove your last expense\n"
    "/recent: the latest expenses\n"
    "/paid @ann 30: record that you paid @ann back\n"
    "/balance: who is up, who is down\n"
    "/settle: suggested payments\n"
    "/me: your own position"
)


def esc(s: str) -> str:
    return html.escape(s, quote=False)


def render_error(error: Exception) -> str:
    # Replies go out as HTML; usage strings contain <amount> and errors echo user input.
    return esc(str(error))


def member_label(m: Member) -> str:
    if m.username:
        return f"@{m.username}"
    if m.first_name:
        return m.first_name
    return str(m.tg_user_id)


def label_for(member_id: int, members_by_id: Mapping[int, Member]) -> str:
    m = members_by_id.get(member_id)
    return esc(member_label(m)) if m else str(member_id)


def format_money(amount: Money, *, signed: bool = False) -> str:
    sign = "+" if signed and amount.amount > 0 else ""
    return f"{sign}{amount}"


def render_balances(balances: list[NetBalance], members_by_id: Mapping[int, Member], *, limit: int = 30) -> str:
    lines: list[str] = []
    for b in balances[:limit]:
        name = label_for(b.participant, members_by_id)
        if b.amount.amount > 0:
            lines.append(f"{name}: {format_money(b.amount, signed=True)} (is owed)")
        elif b.amount.amount < 0:
            lines.append(f"{name}: {format_money(b.amount)} (owes)")
        else:
            lines.append(f"{name}: settled")
    if not lines:
        lines = ["No expenses yet."]
    return "<b>Balances</b>\n<pre>" + "\n".join(lines) + "</pre>"


def render_transfers(transfers: list[Transfer], members_by_id: Mapping[int, Member], *, limit: int = 30) -> str:
    lines = [
        f"{label_for(t.from_participant, members_by_id)} → {label_for(t.to_participant, members_by_id)}: {format_money(t.amount)}"
        for t in transfers[:limit]
    ]
    if not lines:
        lines = ["Everyone is settled up."]
    return "<b>Suggested payments</b>\n<pre>" + "\n".join(lines) + "</pre>"


def render_individual(position: IndividualBalance, members_by_id: Mapping[int, Member]) -> str:
    if position.balance is None:
        return "You are not part of any expense yet."
    b = position.balance
    lines = [f"<b>Net:</b> {format_money(b.amount, signed=True)}"]
    if b.total_paid is not None and b.total_owed is not None:
        lines.append(f"Paid {format_money(b.total_paid)}, share {format_money(b.total_owed)}")
    for t in position.owes_to:
        lines.append(f"You pay {label_for(t.to_participant, members_by_id)}: {format_money(t.amount)}")
    for t in position.owed_by:
        lines.append(f"{label_for(t.from_participant, members_by_id)} pays you: {format_money(t.amount)}")
    return "\n".join(lines)


def render_expense(total: Money, shares: list[Share], members_by_id: Mapping[int, Member], *, payer_id: int) -> str:
    lines = [f"<b>Expense saved:</b> {format_money(total)} paid by {label_for(payer_id, members_by_id)}"]
    lines.append("<pre>" + "\n".join(f"{label_for(s.participant, members_by_id)}: {format_money(s.amount)}" for s in shares) + "</pre>")
    return "\n".join(lines)


def render_recent(expenses: Sequence[Expense], members_by_id: Mapping[int, Member]) -> str:
    if not expenses:
        return "No expenses yet."
    lines = ["<b>Recent expenses</b>"]
    for e in expenses:
        line = f"{e.created_at:%d.%m} {format_money(e.total)} by {label_for(e.created_by_member_id, members_by_id)} ({e.share_mode.value.lower()})"
        if e.note:
            line += f": {esc(e.note)}"
        lines.append(line)
    return "\n".join(lines)
