# readquest/database/repo/users.py
from __future__ import annotations

from typing import Any, Optional

from aiogram.types import TelegramObject
from aiogram.types import User as TelegramUser
from sqlalchemy import func
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import User


def telegram_user_of(event: TelegramObject) -> Optional[TelegramUser]:
    """The Telegram account behind an update: its own sender, or its message/callback sender."""
    sender = getattr(event, "from_user", None)
    if sender is not None:
        return sender

    for attr in ("message", "callback_query"):
        inner: Any = getattr(event, attr, None)
        if inner is not None and getattr(inner, "from_user", None) is not None:
            return inner.from_user

    return None


async def upsert_user_from_event(session: AsyncSession, event: TelegramObject) -> Optional[User]:
    """
    Reader row for the update's Telegram account, created on first contact.
    A single upsert, so two first updates from the same account cannot race.
    """
    tg = telegram_user_of(event)
    if tg is None:
        return None

    profile = {"username": tg.username, "first_name": tg.first_name, "last_name": tg.last_name}
    stmt = (
        sqlite_insert(User)
        .values(telegram_id=tg.id, **profile)
        .on_conflict_do_update(
            index_elements=["telegram_id"],
            set_={**profile, "updated_at": func.now()},
        )
        .returning(User)
    )
    res = await session.scalars(stmt, execution_options={"populate_existing": True})
    return res.one()
