"""
Shared fixtures for the readquest test suite.

Every test gets its own SQLite file (same engine setup as production:
pragmas on connect, BEGIN IMMEDIATE per transaction), so guard and
concurrency tests see real unique-constraint behaviour.
"""
from __future__ import annotations

import random
from typing import AsyncIterator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database import Database


@pytest_asyncio.fixture
async def db(tmp_path) -> AsyncIterator[Database]:
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'readquest-test.db'}")
    await database.init_models()
    try:
        yield database
    finally:
        await database.close()


@pytest_asyncio.fixture
async def session(db: Database) -> AsyncIterator[AsyncSession]:
    async with db.session() as s:
        yield s
        await s.rollback()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)

