# readquest/handlers/user/level_rewards.py
from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.keyboards.main import BTN_LEVEL_REWARDS
from readquest.services.errors import EngineError
from readquest.services.level_rewards import LevelRewardService
from readquest.utils.ensure_user import ensure_user
from readquest.utils.reply import reply_error, reply_safe

router = Router()


@router.message(Command("levelrewards"))
@router.message(F.text == BTN_LEVEL_REWARDS)
async def level_rewards_cmd(message: Message, session: AsyncSession) -> None:
    user = await ensure_user(session, message)

    try:
        claim = await LevelRewardService.claim_pending(session, user.id)
    except EngineError as e:
        await reply_error(message, e)
        return

    if claim.is_empty:
        await reply_safe(message, "🎁 No level rewards waiting. Keep reading!")
        return

    lines = [f"🎁 <b>Level rewards</b> (levels {', '.join(str(lvl) for lvl in claim.levels)})"]
    if claim.currency:
        lines.append(f"🪙 +{claim.currency} Orydors")
    if claim.experience:
        lines.append(f"✨ +{claim.experience} XP")
    for reward_type_id, qty in claim.items.items():
        lines.append(f"🎁 Reward #{reward_type_id} ×{qty}")
    if claim.premium_days:
        lines.append(f"👑 +{claim.premium_days} premium day(s)")
    await reply_safe(message, "\n".join(lines), parse_mode="HTML")
