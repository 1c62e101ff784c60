# readquest/utils/middleware.py
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict

from aiogram import BaseMiddleware
from aiogram.types import TelegramObject
from sqlalchemy.exc import SQLAlchemyError

from readquest.database.repo.users import upsert_user_from_event
from readquest.database.session import Database
from readquest.services.auth import AuthService
from readquest.services.errors import InternalError
from readquest.utils.dt import TimeProvider

log = logging.getLogger(__name__)

AfterCommit = Callable[[], Awaitable[Any]]


class DbSessionMiddleware(BaseMiddleware):
    """
    One DB session (and one unit of work) per update.

    Injects into handler data:
      session     - AsyncSession, committed when the handler returns, rolled back if it raises
      db_user     - the upserted reader, when the update has a Telegram user
      is_admin    - admin flag for db_user (chests skip the period guard for admins)
      today       - the platform's calendar day, used for streaks and free spins
      after_commit - list of zero-arg coroutine functions run once the commit succeeded
                     (outbound messages that must not go out for rolled-back work)
    """

    def __init__(self, db: Database, auth: AuthService, clock: TimeProvider) -> None:
        self.db = db
        self.auth = auth
        self.clock = clock

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        data["today"] = self.clock.today()
        after_commit: list[AfterCommit] = []
        data["after_commit"] = after_commit

        async with self.db.SessionLocal() as session:
            data["session"] = session
            data["is_admin"] = False

            reader = await upsert_user_from_event(session, event)
            if reader is not None:
                data["db_user"] = reader
                data["is_admin"] = await self.auth.is_admin(session, reader.id)

            try:
                result = await handler(event, data)
            except SQLAlchemyError as e:
                await session.rollback()
                raise InternalError("Database error while handling update", {"error": type(e).__name__}) from e
            except Exception:
                await session.rollback()
                log.debug("Rolled back session for update of type %s", type(event).__name__)
                raise

            await session.commit()

        for callback in after_commit:
            try:
                await callback()
            except Exception:
                log.warning("After-commit callback %r failed", callback, exc_info=True)
        return result
