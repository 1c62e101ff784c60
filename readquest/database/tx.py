# readquest/database/tx.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession


@asynccontextmanager
async def transactional(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Run a block as one unit of work.

    - If a transaction is already active (middleware session, caller's tx), use SAVEPOINT
    - Otherwise start and commit a new transaction

    Any exception rolls back every write made inside the block.
    """
    if session.in_transaction():
        async with session.begin_nested():
            yield session
    else:
        async with session.begin():
            yield session
