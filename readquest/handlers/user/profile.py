# readquest/handlers/user/profile.py
from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.keyboards.main import BTN_PROFILE
from readquest.services.bonuses import SkillBonusService
from readquest.services.ledger import LedgerService
from readquest.services.levels import level_progress
from readquest.services.streak import StreakService
from readquest.services.subscription import SubscriptionService
from readquest.utils.ensure_user import ensure_user
from readquest.utils.reply import reply_safe

router = Router()


def _bar(percent: float, width: int = 10) -> str:
    filled = int(round(percent / 100 * width))
    return "▰" * filled + "▱" * (width - filled)


@router.message(Command("profile"))
@router.message(F.text == BTN_PROFILE)
async def profile_cmd(message: Message, session: AsyncSession) -> None:
    user = await ensure_user(session, message)

    stats = await LedgerService.get_stats(session, user.id)
    prog = level_progress(stats.experience)
    streak = await StreakService.get(session, user.id)
    premium = await SubscriptionService.is_premium(session, user.id)
    points = await SkillBonusService.available_points(session, user.id)

    text = (
        "👤 <b>Your profile</b>\n"
        f"• Level: <b>{prog.level}</b> {_bar(prog.percent)} {prog.current_xp}/{prog.level_span} XP\n"
        f"• Orydors: <b>{stats.balance}</b>\n"
        f"• Streak: <b>{streak.current_streak}</b> (best {streak.max_streak})\n"
        f"• Skill points: <b>{points}</b>\n"
        f"• Premium: {'👑 yes' if premium else 'no'}\n"
    )
    if streak.broken_streak_value:
        text += f"\n💔 Broken streak of {streak.broken_streak_value} day(s): /recover"

    await reply_safe(message, text, parse_mode="HTML")
