# readquest/services/notify.py
from __future__ import annotations

from typing import Protocol

from aiogram import Bot

from readquest.database.models import GiftCard


class Notifier(Protocol):
    async def send_gift_card(self, telegram_id: int, card: GiftCard) -> None: ...


class TelegramNotifier:
    """Delivers gift codes by direct message. Errors propagate; callers decide."""

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def send_gift_card(self, telegram_id: int, card: GiftCard) -> None:
        amount = f"{card.amount_cents / 100:.2f}"
        await self.bot.send_message(
            telegram_id,
            "🎁 <b>You won a gift card!</b>\n"
            f"Value: <b>{amount} €</b>\n"
            f"Code: <code>{card.code}</code>\n"
            f"Valid until: <b>{card.expires_at:%Y-%m-%d}</b>",
        )
