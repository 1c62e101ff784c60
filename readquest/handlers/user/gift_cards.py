# readquest/handlers/user/gift_cards.py
from __future__ import annotations

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import GiftCard
from readquest.keyboards.main import BTN_GIFT_CARDS
from readquest.services.gift_cards import GiftCardService
from readquest.utils.ensure_user import ensure_user
from readquest.utils.reply import reply_safe

router = Router()


def format_gift_cards(cards: list[GiftCard]) -> str:
    if not cards:
        return "💳 You have no unused gift cards. Spin the wheel for a chance to win one!"

    lines = ["💳 <b>Your gift cards</b>"]
    for card in cards:
        lines.append(
            f"• <code>{card.code}</code>: {card.amount_cents / 100:.2f} €, valid until {card.expires_at:%Y-%m-%d}"
        )
    return "\n".join(lines)


@router.message(Command("giftcards"))
@router.message(F.text == BTN_GIFT_CARDS)
async def gift_cards_cmd(message: Message, session: AsyncSession) -> None:
    user = await ensure_user(session, message)
    cards = await GiftCardService.list_for_user(session, user.id)
    await reply_safe(message, format_gift_cards(cards), parse_mode="HTML")
