# readquest/services/subscription.py
from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import Subscription
from readquest.utils.dates import utc_now


class SubscriptionService:
    """Read side of the payment collaborator (plus premium-day grants from rewards)."""

    @staticmethod
    async def is_premium(session: AsyncSession, user_id: int, now: datetime | None = None) -> bool:
        sub = await session.scalar(select(Subscription).where(Subscription.user_id == user_id))
        return sub is not None and sub.is_active(now or utc_now())

    @staticmethod
    async def extend(session: AsyncSession, *, user_id: int, days: int, now: datetime | None = None) -> datetime:
        """Add premium days, starting from now if the subscription already lapsed."""
        now = now or utc_now()
        sub = await session.scalar(select(Subscription).where(Subscription.user_id == user_id))
        if sub is None:
            sub = Subscription(user_id=user_id, subscribed=False, subscription_end=None)
            session.add(sub)

        start = sub.subscription_end if sub.subscription_end and sub.subscription_end > now else now
        sub.subscription_end = start + timedelta(days=days)
        sub.subscribed = True
        await session.flush()
        return sub.subscription_end
