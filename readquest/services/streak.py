# readquest/services/streak.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import LedgerReason, UserStreak
from readquest.database.tx import transactional
from readquest.services.errors import NotFoundError
from readquest.services.ledger import LedgerService

log = logging.getLogger(__name__)

DEFAULT_RECOVERY_COST = 1650


@dataclass(frozen=True, slots=True)
class StreakState:
    current_streak: int = 0
    max_streak: int = 0
    last_participation_date: date | None = None
    broken_streak_value: int | None = None

    @classmethod
    def from_row(cls, row: UserStreak | None) -> "StreakState":
        if row is None:
            return cls()
        return cls(
            current_streak=int(row.current_streak or 0),
            max_streak=int(row.max_streak or 0),
            last_participation_date=row.last_participation_date,
            broken_streak_value=row.broken_streak_value,
        )


def next_streak(state: StreakState, today: date) -> StreakState:
    """
    Daily participation transition:
      last == yesterday -> +1
      last == today     -> unchanged
      otherwise         -> 1 (a lost streak > 0 becomes recoverable)
    """
    last = state.last_participation_date
    if last == today:
        return state

    if last is not None and last == today - timedelta(days=1):
        current = state.current_streak + 1
        broken = state.broken_streak_value
    else:
        current = 1
        broken = state.current_streak if state.current_streak > 0 else state.broken_streak_value

    return StreakState(
        current_streak=current,
        max_streak=max(state.max_streak, current),
        last_participation_date=today,
        broken_streak_value=broken,
    )


@dataclass(frozen=True, slots=True)
class RecoveryResult:
    restored_streak: int
    cost: int
    balance_after: int


class StreakService:
    @staticmethod
    async def get(session: AsyncSession, user_id: int) -> StreakState:
        row = await session.scalar(select(UserStreak).where(UserStreak.user_id == user_id))
        return StreakState.from_row(row)

    @staticmethod
    async def participate(session: AsyncSession, user_id: int, today: date) -> StreakState:
        """Apply today's participation and persist it (row created on first use)."""
        row = await session.scalar(select(UserStreak).where(UserStreak.user_id == user_id))
        if row is None:
            row = UserStreak(user_id=user_id, current_streak=0, max_streak=0)
            session.add(row)

        state = next_streak(StreakState.from_row(row), today)
        row.current_streak = state.current_streak
        row.max_streak = state.max_streak
        row.last_participation_date = state.last_participation_date
        row.broken_streak_value = state.broken_streak_value
        await session.flush()
        return state

    @staticmethod
    async def recover(
        session: AsyncSession,
        user_id: int,
        cost: int = DEFAULT_RECOVERY_COST,
    ) -> RecoveryResult:
        """
        Buy back the last broken streak: current_streak becomes the lost value
        and the marker is cleared.
        """
        row = await session.scalar(select(UserStreak).where(UserStreak.user_id == user_id))
        if row is None or not row.broken_streak_value:
            raise NotFoundError("Broken streak", user_id)

        async with transactional(session):
            balance_after = await LedgerService.debit(
                session,
                user_id=user_id,
                amount=cost,
                reason=LedgerReason.STREAK_RECOVERY,
                ref_type="streak",
                ref_id=row.id,
                description=f"Streak recovery ({row.broken_streak_value} days)",
            )
            restored = int(row.broken_streak_value)
            row.current_streak = restored
            row.max_streak = max(int(row.max_streak or 0), restored)
            row.broken_streak_value = None
            await session.flush()

        log.info("Streak recovered user_id=%s streak=%s cost=%s", user_id, restored, cost)
        return RecoveryResult(restored_streak=restored, cost=cost, balance_after=balance_after)
