# readquest/services/challenges.py
"""
Challenge Progress Updater + challenge payout.

Events (book completed, chapter completed, item collected) advance every active
objective they match. Individual objectives count per user; guild objectives
count per guild, all members feeding one shared counter. Increments are
SQL-side (upsert with clamping), and completion is a conditional update so
completed_at is stamped exactly once.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable

from sqlalchemy import func, select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import (
    Challenge,
    ChallengeCompletion,
    ChallengeObjective,
    LedgerReason,
    ObjectiveProgress,
    ObjectiveScope,
    ObjectiveType,
)
from readquest.database.tx import transactional
from readquest.services.bonuses import normalize_genres
from readquest.services.errors import AlreadyClaimedError, ForbiddenError, NotFoundError
from readquest.services.guilds import GuildService
from readquest.services.inventory import InventoryService
from readquest.services.ledger import CreditResult, LedgerService
from readquest.services.subscription import SubscriptionService
from readquest.utils.dates import utc_now

log = logging.getLogger(__name__)


class ProgressEventKind(str, enum.Enum):
    BOOK_COMPLETED = "book_completed"
    CHAPTER_COMPLETED = "chapter_completed"
    ITEM_COLLECTED = "item_collected"


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    kind: ProgressEventKind
    user_id: int
    book_id: int | None = None
    genres: frozenset[str] = field(default_factory=frozenset)
    reward_type_id: int | None = None
    quantity: int = 1

    @classmethod
    def book_completed(cls, user_id: int, book_id: int, genres: Iterable[str] = ()) -> "ProgressEvent":
        return cls(ProgressEventKind.BOOK_COMPLETED, user_id, book_id=book_id, genres=normalize_genres(genres))

    @classmethod
    def chapter_completed(cls, user_id: int, book_id: int, genres: Iterable[str] = ()) -> "ProgressEvent":
        return cls(ProgressEventKind.CHAPTER_COMPLETED, user_id, book_id=book_id, genres=normalize_genres(genres))

    @classmethod
    def item_collected(cls, user_id: int, reward_type_id: int, quantity: int) -> "ProgressEvent":
        return cls(ProgressEventKind.ITEM_COLLECTED, user_id, reward_type_id=reward_type_id, quantity=quantity)


@dataclass(frozen=True, slots=True)
class ProgressResult:
    objective_id: int
    challenge_id: int
    scope: ObjectiveScope
    subject_id: int | None
    current_count: int
    target_count: int
    completed: bool
    just_completed: bool = False
    skipped: str | None = None


@dataclass(frozen=True, slots=True)
class ObjectiveStatus:
    objective: ChallengeObjective
    current_count: int
    completed: bool


@dataclass(frozen=True, slots=True)
class ChallengeStatus:
    challenge: Challenge
    objectives: list[ObjectiveStatus]
    rewards_claimed: bool

    @property
    def fully_completed(self) -> bool:
        return bool(self.objectives) and all(o.completed for o in self.objectives)


@dataclass(frozen=True, slots=True)
class ChallengePayout:
    challenge_id: int
    currency: int
    experience: int
    items: list[tuple[int, int]]
    premium_days: int
    credit: CreditResult | None


def _genre_hit(objective: ChallengeObjective, genres: frozenset[str]) -> bool:
    return bool(objective.target_genre) and objective.target_genre.strip().lower() in genres


def _in_selection(objective: ChallengeObjective, book_id: int | None) -> bool:
    return book_id is not None and book_id in set(objective.target_book_ids or ())


def event_weight(event: ProgressEvent, objective: ChallengeObjective) -> int:
    """How much `event` advances `objective` (0 = not matching)."""
    t = ObjectiveType(objective.objective_type)

    if event.kind == ProgressEventKind.BOOK_COMPLETED:
        if t == ObjectiveType.READ_BOOK:
            return 1 if event.book_id is not None and event.book_id == objective.target_book_id else 0
        if t == ObjectiveType.READ_ANY_BOOKS:
            return 1
        if t == ObjectiveType.READ_SAGA_BOOK:
            return 1 if _in_selection(objective, event.book_id) else 0
        if t == ObjectiveType.READ_GENRE:
            return 1 if _genre_hit(objective, event.genres) else 0
        return 0

    if event.kind == ProgressEventKind.CHAPTER_COMPLETED:
        if t == ObjectiveType.READ_CHAPTERS_BOOK:
            return 1 if event.book_id is not None and event.book_id == objective.target_book_id else 0
        if t == ObjectiveType.READ_CHAPTERS_GENRE:
            return 1 if _genre_hit(objective, event.genres) else 0
        if t == ObjectiveType.READ_CHAPTERS_SELECTION:
            return 1 if _in_selection(objective, event.book_id) else 0
        return 0

    if event.kind == ProgressEventKind.ITEM_COLLECTED:
        if t == ObjectiveType.COLLECT_ITEM and event.reward_type_id == objective.target_reward_type_id:
            return max(0, int(event.quantity))
        return 0

    return 0


class ChallengeProgressService:
    @staticmethod
    async def active_challenges(session: AsyncSession, now: datetime | None = None) -> list[Challenge]:
        now = now or utc_now()
        res = await session.execute(
            select(Challenge)
            .where(
                Challenge.is_active.is_(True),
                Challenge.start_date <= now,
                Challenge.end_date >= now,
            )
            .order_by(Challenge.start_date.desc())
        )
        return list(res.scalars().all())

    @staticmethod
    async def advance(
        session: AsyncSession,
        event: ProgressEvent,
        objective: ChallengeObjective,
        *,
        scope: ObjectiveScope | None = None,
        guild_id: int | None = None,
        now: datetime | None = None,
    ) -> ProgressResult | None:
        """
        Apply one event to one objective. Returns None when the event does not match.
        Guild objectives need the user's guild; without one the update is skipped.
        """
        weight = event_weight(event, objective)
        if weight <= 0:
            return None

        if scope is None:
            challenge = await session.get(Challenge, objective.challenge_id)
            if challenge is None:
                raise NotFoundError("Challenge", objective.challenge_id)
            scope = challenge.scope

        target = int(objective.target_count)

        if scope == ObjectiveScope.GUILD:
            if guild_id is None:
                guild_id = await GuildService.guild_of(session, event.user_id)
            if guild_id is None:
                log.debug(
                    "Guild objective id=%s skipped: user_id=%s has no guild",
                    objective.id,
                    event.user_id,
                )
                return ProgressResult(
                    objective_id=objective.id,
                    challenge_id=objective.challenge_id,
                    scope=scope,
                    subject_id=None,
                    current_count=0,
                    target_count=target,
                    completed=False,
                    skipped="no_guild",
                )
            subject_id = guild_id
        else:
            subject_id = event.user_id

        now = now or utc_now()

        async with transactional(session):
            upsert = (
                sqlite_insert(ObjectiveProgress)
                .values(
                    objective_id=objective.id,
                    challenge_id=objective.challenge_id,
                    scope=scope,
                    subject_id=subject_id,
                    current_count=min(weight, target),
                    completed=False,
                )
                .on_conflict_do_update(
                    index_elements=["objective_id", "scope", "subject_id"],
                    set_={"current_count": func.min(ObjectiveProgress.current_count + weight, target)},
                )
                .returning(ObjectiveProgress.id)
            )
            progress_id = (await session.execute(upsert)).scalar_one()

            # false -> true transition happens in exactly one request
            flipped = await session.execute(
                update(ObjectiveProgress)
                .where(
                    ObjectiveProgress.id == progress_id,
                    ObjectiveProgress.completed.is_(False),
                    ObjectiveProgress.current_count >= target,
                )
                .values(completed=True, completed_at=now)
                .execution_options(synchronize_session=False)
            )
            just_completed = flipped.rowcount == 1

            row = (
                await session.execute(
                    select(ObjectiveProgress.current_count, ObjectiveProgress.completed).where(
                        ObjectiveProgress.id == progress_id
                    )
                )
            ).one()

        if just_completed:
            log.info(
                "Objective completed id=%s scope=%s subject_id=%s",
                objective.id,
                scope.value,
                subject_id,
            )

        return ProgressResult(
            objective_id=objective.id,
            challenge_id=objective.challenge_id,
            scope=scope,
            subject_id=subject_id,
            current_count=int(row[0]),
            target_count=target,
            completed=bool(row[1]),
            just_completed=just_completed,
        )

    @staticmethod
    async def on_event(
        session: AsyncSession,
        event: ProgressEvent,
        now: datetime | None = None,
    ) -> list[ProgressResult]:
        now = now or utc_now()
        challenges = await ChallengeProgressService.active_challenges(session, now)

        guild_id: int | None = None
        guild_loaded = False
        results: list[ProgressResult] = []

        for challenge in challenges:
            for objective in challenge.objectives:
                if event_weight(event, objective) <= 0:
                    continue
                if challenge.scope == ObjectiveScope.GUILD and not guild_loaded:
                    guild_id = await GuildService.guild_of(session, event.user_id)
                    guild_loaded = True
                res = await ChallengeProgressService.advance(
                    session,
                    event,
                    objective,
                    scope=challenge.scope,
                    guild_id=guild_id,
                    now=now,
                )
                if res is not None:
                    results.append(res)

        return results


class ChallengeService:
    @staticmethod
    async def _subject(session: AsyncSession, challenge: Challenge, user_id: int) -> int:
        if challenge.scope == ObjectiveScope.INDIVIDUAL:
            return user_id
        guild_id = await GuildService.guild_of(session, user_id)
        if guild_id is None:
            raise ForbiddenError(
                "Guild challenge requires guild membership",
                {"challenge_id": challenge.id, "user_id": user_id},
                user_message="🛡 Join a guild to take part in guild challenges.",
            )
        return guild_id

    @staticmethod
    async def status(session: AsyncSession, user_id: int, now: datetime | None = None) -> list[ChallengeStatus]:
        challenges = await ChallengeProgressService.active_challenges(session, now)
        if not challenges:
            return []

        guild_id = await GuildService.guild_of(session, user_id)
        res = await session.execute(
            select(ObjectiveProgress).where(
                ObjectiveProgress.challenge_id.in_([c.id for c in challenges]),
            )
            .execution_options(populate_existing=True)
        )
        progress = {
            (p.objective_id, ObjectiveScope(p.scope), p.subject_id): p for p in res.scalars().all()
        }
        claimed = set(
            (
                await session.execute(
                    select(ChallengeCompletion.challenge_id).where(ChallengeCompletion.user_id == user_id)
                )
            ).scalars()
        )

        out: list[ChallengeStatus] = []
        for c in challenges:
            subject = user_id if c.scope == ObjectiveScope.INDIVIDUAL else guild_id
            items: list[ObjectiveStatus] = []
            for o in c.objectives:
                p = progress.get((o.id, c.scope, subject)) if subject is not None else None
                items.append(
                    ObjectiveStatus(
                        objective=o,
                        current_count=int(p.current_count) if p else 0,
                        completed=bool(p.completed) if p else False,
                    )
                )
            out.append(ChallengeStatus(challenge=c, objectives=items, rewards_claimed=c.id in claimed))
        return out

    @staticmethod
    async def claim_rewards(session: AsyncSession, *, user_id: int, challenge_id: int) -> ChallengePayout:
        challenge = await session.get(Challenge, challenge_id)
        if challenge is None:
            raise NotFoundError("Challenge", challenge_id)

        subject_id = await ChallengeService._subject(session, challenge, user_id)
        objective_ids = [o.id for o in challenge.objectives]
        done = await session.scalar(
            select(func.count(ObjectiveProgress.id)).where(
                ObjectiveProgress.objective_id.in_(objective_ids),
                ObjectiveProgress.scope == challenge.scope,
                ObjectiveProgress.subject_id == subject_id,
                ObjectiveProgress.completed.is_(True),
            )
        )
        if not objective_ids or int(done or 0) < len(objective_ids):
            raise ForbiddenError(
                "Challenge not completed",
                {"challenge_id": challenge_id, "completed": int(done or 0), "total": len(objective_ids)},
                user_message="🎯 Complete every objective before claiming.",
            )

        items = [
            (int(i["reward_type_id"]), int(i.get("quantity", 1)))
            for i in (challenge.item_rewards or [])
            if i.get("reward_type_id") is not None
        ]

        try:
            async with transactional(session):
                credit = None
                if challenge.currency_reward or challenge.xp_reward:
                    credit = await LedgerService.credit(
                        session,
                        user_id=user_id,
                        reason=LedgerReason.CHALLENGE_REWARD,
                        currency=challenge.currency_reward,
                        experience=challenge.xp_reward,
                        ref_type="challenge",
                        ref_id=challenge.id,
                        description=f"Challenge: {challenge.name}",
                    )
                for reward_type_id, qty in items:
                    if qty > 0:
                        await InventoryService.add(session, user_id=user_id, reward_type_id=reward_type_id, quantity=qty)
                if challenge.premium_days_reward > 0:
                    await SubscriptionService.extend(session, user_id=user_id, days=challenge.premium_days_reward)

                # payout marker last: a conflict rolls the whole payout back
                session.add(ChallengeCompletion(user_id=user_id, challenge_id=challenge.id))
                await session.flush()
        except IntegrityError:
            raise AlreadyClaimedError(
                "Challenge rewards already claimed",
                {"challenge_id": challenge_id, "user_id": user_id},
                user_message="🏅 You already claimed this challenge.",
            ) from None

        log.info("Challenge claimed user_id=%s challenge_id=%s", user_id, challenge_id)
        return ChallengePayout(
            challenge_id=challenge.id,
            currency=challenge.currency_reward,
            experience=challenge.xp_reward,
            items=items,
            premium_days=challenge.premium_days_reward,
            credit=credit,
        )
