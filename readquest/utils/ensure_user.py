# readquest/utils/ensure_user.py
from __future__ import annotations

from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import User
from readquest.database.repo.users import upsert_user_from_event


async def ensure_user(session: AsyncSession, message: Message) -> User:
    row = await upsert_user_from_event(session, message)
    if row is None:
        raise RuntimeError("Unable to ensure user: message has no from_user")
    return row
