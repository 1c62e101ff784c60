# readquest/services/gift_cards.py
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import GiftCard
from readquest.services.errors import InternalError
from readquest.services.notify import Notifier
from readquest.utils.dates import utc_now

log = logging.getLogger(__name__)

# no 0/O, 1/I/L
CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_GROUPS = 3
CODE_GROUP_LEN = 4
MAX_MINT_ATTEMPTS = 5


def generate_code() -> str:
    groups = [
        "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_GROUP_LEN))
        for _ in range(CODE_GROUPS)
    ]
    return "RQ-" + "-".join(groups)


class GiftCardService:
    @staticmethod
    async def mint(
        session: AsyncSession,
        *,
        user_id: int,
        amount_cents: int,
        validity_days: int = 365,
        spin_id: int | None = None,
        now: datetime | None = None,
    ) -> GiftCard:
        """
        Create a gift card with a fresh code. The code is checked first and the
        unique constraint catches the race; both cases retry with a new code.
        """
        now = now or utc_now()

        for attempt in range(1, MAX_MINT_ATTEMPTS + 1):
            code = generate_code()
            taken = await session.scalar(select(GiftCard.id).where(GiftCard.code == code))
            if taken is not None:
                log.debug("Gift code collision (lookup) attempt=%s", attempt)
                continue

            card = GiftCard(
                code=code,
                user_id=user_id,
                spin_id=spin_id,
                amount_cents=amount_cents,
                expires_at=now + timedelta(days=validity_days),
            )
            try:
                async with session.begin_nested():
                    session.add(card)
                    await session.flush()
            except IntegrityError:
                log.debug("Gift code collision (insert) attempt=%s", attempt)
                continue

            log.info("Gift card minted user_id=%s id=%s amount_cents=%s", user_id, card.id, amount_cents)
            return card

        raise InternalError("Could not mint a unique gift card code", {"attempts": MAX_MINT_ATTEMPTS})

    @staticmethod
    async def list_for_user(
        session: AsyncSession,
        user_id: int,
        now: datetime | None = None,
    ) -> list[GiftCard]:
        """Unredeemed, unexpired cards of a user, newest first."""
        now = now or utc_now()
        res = await session.execute(
            select(GiftCard)
            .where(
                GiftCard.user_id == user_id,
                GiftCard.redeemed_at.is_(None),
                GiftCard.expires_at > now,
            )
            .order_by(GiftCard.id.desc())
        )
        return list(res.scalars().all())

    @staticmethod
    async def deliver(notifier: Notifier, telegram_id: int, card: GiftCard) -> bool:
        """
        Best-effort DM of a committed card. Failures are logged and swallowed:
        the card stays listed under /giftcards either way.
        """
        try:
            await notifier.send_gift_card(telegram_id, card)
        except Exception:
            log.warning("Gift card id=%s delivery failed telegram_id=%s", card.id, telegram_id, exc_info=True)
            return False
        log.info("Gift card id=%s delivered telegram_id=%s", card.id, telegram_id)
        return True
