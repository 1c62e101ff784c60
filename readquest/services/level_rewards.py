# readquest/services/level_rewards.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import LedgerReason, LevelReward, PendingLevelReward
from readquest.database.tx import transactional
from readquest.services.inventory import InventoryService
from readquest.services.subscription import SubscriptionService
from readquest.utils.dates import utc_now

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LevelRewardClaim:
    levels: list[int] = field(default_factory=list)
    currency: int = 0
    experience: int = 0
    items: dict[int, int] = field(default_factory=dict)  # reward_type_id -> quantity
    premium_days: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.levels


class LevelRewardService:
    @staticmethod
    async def queue_for_levels(session: AsyncSession, *, user_id: int, levels: list[int]) -> int:
        """Queue the active reward of every level in `levels`. Returns how many levels had one."""
        if not levels:
            return 0

        res = await session.execute(
            select(LevelReward.id, LevelReward.level).where(
                LevelReward.level.in_(levels),
                LevelReward.is_active.is_(True),
            )
        )
        rows = res.all()
        if not rows:
            return 0

        # a level's reward is queued once per user
        stmt = (
            sqlite_insert(PendingLevelReward)
            .values([{"user_id": user_id, "level": lvl, "level_reward_id": rid} for rid, lvl in rows])
            .on_conflict_do_nothing(index_elements=["user_id", "level"])
        )
        await session.execute(stmt)
        return len(rows)

    @staticmethod
    async def pending(session: AsyncSession, user_id: int) -> list[PendingLevelReward]:
        res = await session.execute(
            select(PendingLevelReward)
            .where(
                PendingLevelReward.user_id == user_id,
                PendingLevelReward.claimed_at.is_(None),
            )
            .order_by(PendingLevelReward.level)
        )
        return list(res.scalars().unique().all())

    @staticmethod
    async def claim_pending(
        session: AsyncSession,
        user_id: int,
        now: datetime | None = None,
    ) -> LevelRewardClaim:
        """
        Pay every unclaimed level reward in one go.
        Rows are marked with a conditional update first, so two concurrent claims
        cannot both pay the same level.
        """
        # ledger queues level rewards itself, so import it late
        from readquest.services.ledger import LedgerService

        now = now or utc_now()

        async with transactional(session):
            rows = await LevelRewardService.pending(session, user_id)
            if not rows:
                return LevelRewardClaim()

            claimed_ids = (
                await session.execute(
                    update(PendingLevelReward)
                    .where(
                        PendingLevelReward.id.in_([r.id for r in rows]),
                        PendingLevelReward.claimed_at.is_(None),
                    )
                    .values(claimed_at=now)
                    .returning(PendingLevelReward.id)
                    .execution_options(synchronize_session=False)
                )
            ).scalars().all()
            claimed = [r for r in rows if r.id in set(claimed_ids)]
            if not claimed:
                return LevelRewardClaim()

            currency = sum(int(r.level_reward.currency_reward or 0) for r in claimed)
            experience = sum(int(r.level_reward.xp_bonus or 0) for r in claimed)
            premium_days = sum(int(r.level_reward.premium_days or 0) for r in claimed)
            items: dict[int, int] = {}
            for r in claimed:
                for item in r.level_reward.item_rewards or []:
                    rid = item.get("reward_type_id")
                    qty = int(item.get("quantity", 1))
                    if rid is not None and qty > 0:
                        items[int(rid)] = items.get(int(rid), 0) + qty

            levels = [r.level for r in claimed]
            if currency or experience:
                await LedgerService.credit(
                    session,
                    user_id=user_id,
                    reason=LedgerReason.LEVEL_REWARD,
                    currency=currency,
                    experience=experience,
                    ref_type="level",
                    ref_id=max(levels),
                    description=f"Level rewards: {', '.join(str(lvl) for lvl in levels)}",
                )
            for rid, qty in items.items():
                await InventoryService.add(session, user_id=user_id, reward_type_id=rid, quantity=qty)
            if premium_days:
                await SubscriptionService.extend(session, user_id=user_id, days=premium_days, now=now)

        log.info("Level rewards claimed user_id=%s levels=%s", user_id, levels)
        return LevelRewardClaim(
            levels=levels,
            currency=currency,
            experience=experience,
            items=items,
            premium_days=premium_days,
        )
