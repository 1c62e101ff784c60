# readquest/handlers/user/challenges.py
from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.keyboards.main import BTN_CHALLENGES
from readquest.services.challenges import ChallengeService
from readquest.services.errors import EngineError
from readquest.utils.ensure_user import ensure_user
from readquest.utils.reply import reply_error, reply_safe

router = Router()


@router.message(Command("challenges"))
@router.message(F.text == BTN_CHALLENGES)
async def challenges_cmd(message: Message, session: AsyncSession) -> None:
    user = await ensure_user(session, message)

    statuses = await ChallengeService.status(session, user.id)
    if not statuses:
        await reply_safe(message, "🎯 No active challenges right now.")
        return

    blocks: list[str] = []
    for st in statuses:
        c = st.challenge
        head = f"{'🛡' if c.is_guild_challenge else '🎯'} <b>{c.name}</b> (#{c.id}), ends {c.end_date:%Y-%m-%d}"
        lines = [head]
        for o in st.objectives:
            mark = "✅" if o.completed else "▫️"
            lines.append(f"{mark} {o.objective.name or o.objective.objective_type.value}: {o.current_count}/{o.objective.target_count}")
        if st.rewards_claimed:
            lines.append("🏅 Rewards claimed")
        elif st.fully_completed:
            lines.append(f"🎁 Claim with <code>/claim {c.id}</code>")
        blocks.append("\n".join(lines))

    await reply_safe(message, "\n\n".join(blocks), parse_mode="HTML")


@router.message(Command("claim"))
async def claim_cmd(message: Message, command: CommandObject, session: AsyncSession) -> None:
    user = await ensure_user(session, message)

    try:
        challenge_id = int((command.args or "").strip())
    except ValueError:
        await reply_safe(message, "Usage: <code>/claim &lt;challenge_id&gt;</code>", parse_mode="HTML")
        return

    try:
        payout = await ChallengeService.claim_rewards(session, user_id=user.id, challenge_id=challenge_id)
    except EngineError as e:
        await reply_error(message, e)
        return

    lines = ["🏅 <b>Challenge rewards claimed!</b>"]
    if payout.currency:
        lines.append(f"🪙 +{payout.currency} Orydors")
    if payout.experience:
        lines.append(f"✨ +{payout.experience} XP")
    for reward_type_id, qty in payout.items:
        lines.append(f"🎁 Reward #{reward_type_id} ×{qty}")
    if payout.premium_days:
        lines.append(f"👑 +{payout.premium_days} premium day(s)")
    await reply_safe(message, "\n".join(lines), parse_mode="HTML")
