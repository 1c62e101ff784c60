# readquest/handlers/user/streak.py
from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.config.settings import Settings
from readquest.keyboards.main import BTN_RECOVER
from readquest.services.errors import EngineError, NotFoundError
from readquest.services.streak import StreakService
from readquest.utils.ensure_user import ensure_user
from readquest.utils.reply import reply_error, reply_safe

router = Router()


@router.message(Command("recover"))
@router.message(F.text == BTN_RECOVER)
async def recover_cmd(message: Message, session: AsyncSession, settings: Settings) -> None:
    user = await ensure_user(session, message)

    try:
        res = await StreakService.recover(session, user.id, cost=settings.streak_recovery_cost)
    except NotFoundError:
        await reply_safe(message, "🔥 You have no broken streak to recover.")
        return
    except EngineError as e:
        await reply_error(message, e)
        return

    await reply_safe(
        message,
        f"🔥 Streak restored to <b>{res.restored_streak}</b> day(s)!\n"
        f"🪙 -{res.cost} Orydors (balance: {res.balance_after})",
        parse_mode="HTML",
    )
