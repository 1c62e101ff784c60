# readquest/handlers/user/spin.py
from __future__ import annotations

from datetime import date
from functools import partial

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.config.settings import Settings
from readquest.database.models import SegmentKind
from readquest.keyboards.main import BTN_SPIN
from readquest.services.errors import EngineError
from readquest.services.gift_cards import GiftCardService
from readquest.services.notify import Notifier
from readquest.services.wheel import SpinResult, WheelService, default_segments
from readquest.utils.ensure_user import ensure_user
from readquest.utils.middleware import AfterCommit
from readquest.utils.reply import reply_error, reply_safe

router = Router()


def format_spin(res: SpinResult) -> str:
    seg = res.segment
    if seg.kind == SegmentKind.CURRENCY:
        line = f"🪙 You won <b>+{res.reward_value} Orydors</b>!"
    elif seg.kind == SegmentKind.EXPERIENCE:
        line = f"✨ You won <b>+{res.reward_value} XP</b>!"
    elif seg.kind == SegmentKind.ITEM:
        line = f"🎁 You won <b>{seg.label or 'an item'}</b> ×{res.reward_value}!"
    else:
        line = "💳 <b>JACKPOT!</b> You won a gift card."
        line += " The code is on its way by private message; /giftcards lists your codes any time."

    lines = [line, f"🔥 Streak: <b>{res.new_streak}</b> day(s)"]
    if res.streak_bonus is not None:
        lines.append(f"⚡ Streak bonus: {res.streak_bonus.bonus_type.value} ×{res.streak_bonus.bonus_value:g}")
    for b in res.applied_bonuses:
        lines.append(f"🌟 {b.describe()}")
    if res.did_level_up:
        lines.append(f"🆙 Level up! You are now level <b>{res.credit.level_after}</b>.")
    return "\n".join(lines)


@router.message(Command("spin"))
@router.message(F.text == BTN_SPIN)
async def spin_cmd(
    message: Message,
    session: AsyncSession,
    settings: Settings,
    notifier: Notifier,
    today: date,
    after_commit: list[AfterCommit],
) -> None:
    user = await ensure_user(session, message)

    try:
        res = await WheelService.spin(
            session,
            user.id,
            today=today,
            gift_card_value_cents=settings.gift_card_value_cents,
            gift_card_validity_days=settings.gift_card_validity_days,
            fallback_segments=default_segments(
                settings.wheel_key_reward_type_id,
                settings.wheel_fragment_reward_type_id,
            ),
        )
    except EngineError as e:
        await reply_error(message, e)
        return

    if res.gift_card is not None and user.telegram_id is not None:
        after_commit.append(partial(GiftCardService.deliver, notifier, user.telegram_id, res.gift_card))

    await reply_safe(message, format_spin(res), parse_mode="HTML")
