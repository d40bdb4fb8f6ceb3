from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from expense_ledger.core.balances import NetBalance, Payment, Transfer, aggregate
from expense_ledger.core.money import Money
from expense_ledger.core.simplify import simplify
from expense_ledger.core.splits import Share, ShareMode
from expense_ledger.db.models import Expense, ExpensePayer, ExpenseShare, Settlement, SettlementStatus


@dataclass(frozen=True)
class LedgerSnapshot:
    currency: str
    shares: list[Share]
    payments: list[Payment]
    settlements: list[Transfer]


@dataclass(frozen=True)
class GroupBalances:
    currency: str
    balances: list[NetBalance]  # amount desc, then member id
    transfers: list[Transfer]


@dataclass(frozen=True)
class IndividualBalance:
    balance: Optional[NetBalance]
    owes_to: list[Transfer]
    owed_by: list[Transfer]


async def load_snapshot(session: AsyncSession, *, chat_id: int, currency: str) -> LedgerSnapshot:
    live = (Expense.chat_id == chat_id, Expense.deleted_at.is_(None))

    share_rows = (
        await session.execute(
            select(ExpenseShare.member_id, ExpenseShare.amount_minor, ExpenseShare.ratio, Expense.currency, Expense.share_mode)
            .join(Expense, Expense.id == ExpenseShare.expense_id)
            .where(*live)
            .order_by(ExpenseShare.expense_id.asc(), ExpenseShare.position.asc())
        )
    ).all()

    payer_rows = (
        await session.execute(
            select(ExpensePayer.member_id, ExpensePayer.amount_minor, Expense.currency)
            .join(Expense, Expense.id == ExpensePayer.expense_id)
            .where(*live)
            .order_by(ExpensePayer.expense_id.asc(), ExpensePayer.id.asc())
        )
    ).all()

    settlement_rows = (
        await session.execute(
            select(Settlement.payer_member_id, Settlement.payee_member_id, Settlement.amount_minor, Settlement.currency)
            .where(Settlement.chat_id == chat_id, Settlement.status == SettlementStatus.CONFIRMED)
            .order_by(Settlement.id.asc())
        )
    ).all()

    return LedgerSnapshot(
        currency=currency,
        shares=[
            Share(participant=int(mid), amount=Money(int(amt), cur), mode=ShareMode(mode), ratio=ratio)
            for mid, amt, ratio, cur, mode in share_rows
        ],
        payments=[Payment(payer=int(mid), amount=Money(int(amt), cur)) for mid, amt, cur in payer_rows],
        settlements=[
            Transfer(from_participant=int(frm), to_participant=int(to), amount=Money(int(amt), cur))
            for frm, to, amt, cur in settlement_rows
        ],
    )


def summarize(snapshot: LedgerSnapshot) -> GroupBalances:
    balances = aggregate(snapshot.shares, snapshot.payments, snapshot.settlements, currency=snapshot.currency)
    balances.sort(key=lambda b: (-b.amount.amount, b.participant))
    return GroupBalances(currency=snapshot.currency, balances=balances, transfers=simplify(balances))


async def compute_group_balances(session: AsyncSession, *, chat_id: int, currency: str) -> GroupBalances:
    return summarize(await load_snapshot(session, chat_id=chat_id, currency=currency))


def individual_balance(group: GroupBalances, member_id: int) -> IndividualBalance:
    balance = next((b for b in group.balances if b.participant == member_id), None)
    return IndividualBalance(
        balance=balance,
        owes_to=[t for t in group.transfers if t.from_participant == member_id],
        owed_by=[t for t in group.transfers if t.to_participant == member_id],
    )
