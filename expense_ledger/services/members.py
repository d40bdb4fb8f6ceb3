from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Optional

import sqlalchemy as sa
from aiogram.types import Chat as TgChat
from aiogram.types import User as TgUser
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from expense_ledger.db.models import Chat, Member


class NotAMember(ValueError):
    def __init__(self, missing: set[int]) -> None:
        super().__init__("Everyone involved must be a member of this group.")
        self.missing = missing


@dataclass(frozen=True)
class MemberDirectory:
    """Members of one chat, indexed the ways the ledger commands look them up."""

    by_id: dict[int, Member] = field(default_factory=dict)
    ids_by_username: dict[str, int] = field(default_factory=dict)

    @property
    def ids(self) -> list[int]:
        return list(self.by_id)


def normalize_username(username: str) -> str:
    return username.lstrip("@").lower()


async def ensure_chat(session: AsyncSession, *, tg_chat: TgChat, currency: str) -> Chat:
    # currency is only written on insert; a group keeps its ledger currency for life.
    values = {"tg_chat_id": tg_chat.id, "title": tg_chat.title, "currency": currency}
    stmt = insert(Chat).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=[Chat.tg_chat_id],
        set_={"title": sa.func.coalesce(stmt.excluded.title, Chat.title)},
    ).returning(Chat)
    return (await session.execute(stmt)).scalar_one()


async def upsert_member(session: AsyncSession, *, chat: Chat, user: TgUser) -> Member:
    stmt = insert(Member).values(
        chat_id=chat.id,
        tg_user_id=user.id,
        username=normalize_username(user.username) if user.username else None,
        first_name=user.first_name or None,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Member.chat_id, Member.tg_user_id],
        set_={"username": stmt.excluded.username, "first_name": stmt.excluded.first_name},
    ).returning(Member)
    return (await session.execute(stmt)).scalar_one()


async def load_directory(session: AsyncSession, *, chat_id: int) -> MemberDirectory:
    members = await session.scalars(select(Member).where(Member.chat_id == chat_id).order_by(Member.id.asc()))
    directory = MemberDirectory()
    for m in members:
        directory.by_id[m.id] = m
        if m.username:
            directory.ids_by_username[m.username] = m.id
    return directory


async def get_member_by_username(session: AsyncSession, *, chat_id: int, username: str) -> Optional[Member]:
    return await session.scalar(
        select(Member).where(Member.chat_id == chat_id, Member.username == normalize_username(username))
    )


async def check_members_in_chat(session: AsyncSession, *, chat_id: int, member_ids: Iterable[int]) -> None:
    wanted = set(member_ids)
    if not wanted:
        return
    found = set(
        await session.scalars(select(Member.id).where(Member.chat_id == chat_id, Member.id.in_(wanted)))
    )
    if wanted - found:
        raise NotAMember(wanted - found)
