# readquest/services/ledger.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import LedgerEntry, LedgerReason, UserStats
from readquest.database.tx import transactional
from readquest.services.errors import InsufficientResourceError
from readquest.services.level_rewards import LevelRewardService
from readquest.services.levels import level_for, levels_gained

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StatsSnapshot:
    balance: int
    experience: int

    @property
    def level(self) -> int:
        return level_for(self.experience)


@dataclass(frozen=True, slots=True)
class CreditResult:
    balance_before: int
    balance_after: int
    xp_before: int
    xp_after: int
    new_levels: list[int] = field(default_factory=list)

    @property
    def level_before(self) -> int:
        return level_for(self.xp_before)

    @property
    def level_after(self) -> int:
        return level_for(self.xp_after)

    @property
    def did_level_up(self) -> bool:
        return bool(self.new_levels)


class LedgerService:
    @staticmethod
    async def get_stats(session: AsyncSession, user_id: int) -> StatsSnapshot:
        # columns, not the entity: counters change through SQL-side updates
        row = (
            await session.execute(
                select(UserStats.balance, UserStats.experience).where(UserStats.user_id == user_id)
            )
        ).one_or_none()
        if row is None:
            return StatsSnapshot(balance=0, experience=0)
        return StatsSnapshot(balance=int(row[0]), experience=int(row[1]))

    @staticmethod
    async def credit(
        session: AsyncSession,
        *,
        user_id: int,
        reason: LedgerReason,
        currency: int = 0,
        experience: int = 0,
        ref_type: str | None = None,
        ref_id: int | None = None,
        description: str | None = None,
    ) -> CreditResult:
        """
        Add currency and/or XP atomically (SQL-side arithmetic, no read-modify-write)
        and append the ledger entry. Newly reached levels get their rewards queued.
        """
        currency = int(currency)
        experience = int(experience)
        if currency < 0 or experience < 0:
            raise ValueError("credit amounts must be >= 0 (use debit)")

        async with transactional(session):
            stmt = (
                sqlite_insert(UserStats)
                .values(user_id=user_id, balance=currency, experience=experience)
                .on_conflict_do_update(
                    index_elements=["user_id"],
                    set_={
                        "balance": UserStats.balance + currency,
                        "experience": UserStats.experience + experience,
                    },
                )
                .returning(UserStats.balance, UserStats.experience)
            )
            balance_after, xp_after = (await session.execute(stmt)).one()
            balance_after, xp_after = int(balance_after), int(xp_after)

            if currency or experience:
                session.add(
                    LedgerEntry(
                        user_id=user_id,
                        reason=reason,
                        amount=currency,
                        experience=experience,
                        ref_type=ref_type,
                        ref_id=ref_id,
                        description=description,
                    )
                )
                await session.flush()

            xp_before = xp_after - experience
            new_levels = levels_gained(xp_before, xp_after)
            if new_levels:
                await LevelRewardService.queue_for_levels(session, user_id=user_id, levels=new_levels)
                log.info("Level up user_id=%s levels=%s", user_id, new_levels)

        return CreditResult(
            balance_before=balance_after - currency,
            balance_after=balance_after,
            xp_before=xp_before,
            xp_after=xp_after,
            new_levels=new_levels,
        )

    @staticmethod
    async def debit(
        session: AsyncSession,
        *,
        user_id: int,
        amount: int,
        reason: LedgerReason,
        ref_type: str | None = None,
        ref_id: int | None = None,
        description: str | None = None,
    ) -> int:
        """
        Spend currency with a conditional update (balance >= amount).
        Returns the new balance; raises InsufficientResourceError otherwise.
        """
        amount = int(amount)
        if amount <= 0:
            raise ValueError("debit amount must be > 0")

        async with transactional(session):
            new_balance = await session.scalar(
                update(UserStats)
                .where(UserStats.user_id == user_id, UserStats.balance >= amount)
                .values(balance=UserStats.balance - amount)
                .returning(UserStats.balance)
            )
            if new_balance is None:
                current = (await LedgerService.get_stats(session, user_id)).balance
                raise InsufficientResourceError("Orydors", amount, current)

            session.add(
                LedgerEntry(
                    user_id=user_id,
                    reason=reason,
                    amount=-amount,
                    experience=0,
                    ref_type=ref_type,
                    ref_id=ref_id,
                    description=description,
                )
            )
            await session.flush()

        return int(new_balance)

