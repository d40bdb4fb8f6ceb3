from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from expense_ledger.config import settings

SNAPSHOT_OPTIONS = {"isolation_level": "REPEATABLE READ", "postgresql_readonly": True}


def create_engine(url: Optional[str] = None, *, echo: Optional[bool] = None) -> AsyncEngine:
    return create_async_engine(
        url or settings.database_url,
        echo=settings.sql_echo if echo is None else echo,
        pool_pre_ping=True,
    )


engine = create_engine()
SessionMaker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@asynccontextmanager
async def snapshot_scope(sessionmaker: async_sessionmaker[AsyncSession] = SessionMaker) -> AsyncIterator[AsyncSession]:
    """Read-only session whose queries all see one database snapshot.

    Balances come from several queries (shares, payers, settlements); without a
    shared snapshot a concurrent /expense could land between them.
    """
    async with sessionmaker() as session:
        await session.connection(execution_options=SNAPSHOT_OPTIONS)
        yield session
