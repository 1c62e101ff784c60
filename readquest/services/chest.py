# readquest/services/chest.py
"""
Chest Claim Guard + persistence of a Loot Resolver outcome.

One chest per (user, book, period). A chest key (an item with unlocks_chest)
reopens it: the key is consumed and the claim takes the next claim_index.
The claim row is written last, in the same transaction as every side effect,
so a lost race rolls the whole opening back.
"""
from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import Book, ChestClaim, ChestTier, LedgerReason, LootTableEntry
from readquest.database.tx import transactional
from readquest.services.bonuses import SkillBonusService
from readquest.services.catalog import CatalogService, CurrencyReward, ExperienceReward, RewardDescriptor
from readquest.services.challenges import ChallengeProgressService, ProgressEvent
from readquest.services.errors import AlreadyClaimedError, NotFoundError, ValidationError
from readquest.services.inventory import InventoryService
from readquest.services.ledger import CreditResult, LedgerService
from readquest.services.loot import LootResult, merge_scopes, resolve_loot
from readquest.services.subscription import SubscriptionService
from readquest.utils.dates import period_key, utc_today

log = logging.getLogger(__name__)

ALREADY_OPENED_MESSAGE = "📦 You already opened this book's chest this period. A chest key reopens it."


@dataclass(frozen=True, slots=True)
class GrantedItem:
    reward: RewardDescriptor
    quantity: int


@dataclass(frozen=True, slots=True)
class ChestOpening:
    claim_id: int
    book_id: int
    period_key: str
    claim_index: int
    loot: LootResult
    currency: int
    experience: int
    items: list[GrantedItem] = field(default_factory=list)
    used_key: RewardDescriptor | None = None
    credit: CreditResult | None = None

    @property
    def tier(self) -> ChestTier:
        return self.loot.tier


class ChestService:
    @staticmethod
    async def is_claimed(session: AsyncSession, *, user_id: int, book_id: int, period: str) -> bool:
        found = await session.scalar(
            select(ChestClaim.id)
            .where(
                ChestClaim.user_id == user_id,
                ChestClaim.book_id == book_id,
                ChestClaim.period_key == period,
            )
            .limit(1)
        )
        return found is not None

    @staticmethod
    async def _candidates(session: AsyncSession, book: Book, tier: ChestTier):
        res = await session.execute(
            select(LootTableEntry)
            .where(
                LootTableEntry.chest_tier == tier,
                or_(LootTableEntry.book_id.is_(None), LootTableEntry.book_id == book.id),
            )
            .order_by(LootTableEntry.id)
        )
        return merge_scopes(res.scalars().all(), book_id=book.id, genres=book.genres or [], tier=tier)

    @staticmethod
    async def open_chest(
        session: AsyncSession,
        user_id: int,
        book_id: int,
        *,
        use_key: int | None = None,
        today: date | None = None,
        rng: random.Random | None = None,
        is_admin: bool = False,
        period: str = "month",
    ) -> ChestOpening:
        today = today or utc_today()
        pkey = period_key(today, period)

        book = await session.get(Book, book_id)
        if book is None:
            raise NotFoundError("Book", book_id)

        key: RewardDescriptor | None = None
        if use_key is not None:
            key = await CatalogService.get(session, use_key)
            if not key.is_chest_key:
                raise ValidationError("key", f"{key.name} does not open chests")

        if is_admin:
            tier = ChestTier.GOLD
        else:
            tier = ChestTier.GOLD if await SubscriptionService.is_premium(session, user_id) else ChestTier.SILVER

        # fast path; the unique constraint still decides under concurrency
        already = await ChestService.is_claimed(session, user_id=user_id, book_id=book_id, period=pkey)
        if key is not None and not already:
            # nothing to bypass: a plain opening, the key stays in the inventory
            log.debug("Key id=%s not needed for unclaimed chest user_id=%s book_id=%s", key.id, user_id, book_id)
            key = None
        if key is None and not is_admin and already:
            raise AlreadyClaimedError(
                "Chest already opened this period",
                {"user_id": user_id, "book_id": book_id, "period": pkey},
                user_message=ALREADY_OPENED_MESSAGE,
            )

        bonuses = await SkillBonusService.active_bonuses(session, user_id)
        candidates = await ChestService._candidates(session, book, tier)
        loot = resolve_loot(
            book.points,
            book.genres or [],
            tier,
            candidates,
            bonuses,
            today=today,
            force_max=is_admin,
            rng=rng,
        )

        async with transactional(session):
            claim_index = 0
            if key is not None or is_admin:
                if key is not None:
                    await InventoryService.consume(session, user_id=user_id, reward_type_id=key.id, quantity=1)
                last = await session.scalar(
                    select(func.max(ChestClaim.claim_index)).where(
                        ChestClaim.user_id == user_id,
                        ChestClaim.book_id == book_id,
                        ChestClaim.period_key == pkey,
                    )
                )
                claim_index = 0 if last is None else int(last) + 1

            # currency / experience drops land in the ledger, the rest in inventory
            descriptors = await CatalogService.get_many(session, {f.reward_type_id for f in loot.fired})
            currency = loot.currency
            experience = loot.experience
            items: list[GrantedItem] = []
            for fired in loot.fired:
                d = descriptors.get(fired.reward_type_id)
                if d is None:
                    log.warning("Loot entry id=%s points at missing reward id=%s", fired.entry_id, fired.reward_type_id)
                    continue
                if isinstance(d.payload, CurrencyReward):
                    currency += d.payload.amount * fired.quantity
                elif isinstance(d.payload, ExperienceReward):
                    experience += d.payload.amount * fired.quantity
                else:
                    await InventoryService.add(
                        session, user_id=user_id, reward_type_id=d.id, quantity=fired.quantity
                    )
                    items.append(GrantedItem(reward=d, quantity=fired.quantity))

            credit = None
            if currency or experience:
                credit = await LedgerService.credit(
                    session,
                    user_id=user_id,
                    reason=LedgerReason.CHEST,
                    currency=currency,
                    experience=experience,
                    ref_type="book",
                    ref_id=book_id,
                    description=f"Chest ({tier.value}): {book.title}",
                )

            for item in items:
                await ChallengeProgressService.on_event(
                    session,
                    ProgressEvent.item_collected(user_id, item.reward.id, item.quantity),
                )

            claim = ChestClaim(
                user_id=user_id,
                book_id=book_id,
                period_key=pkey,
                claim_index=claim_index,
                chest_tier=tier,
                band=loot.band,
                currency=currency,
                rewards=[
                    {
                        "reward_type_id": f.reward_type_id,
                        "quantity": f.quantity,
                        "entry_id": f.entry_id,
                        "scope": f.scope,
                    }
                    for f in loot.fired
                ],
                key_reward_type_id=key.id if key is not None else None,
            )
            session.add(claim)
            try:
                await session.flush()
            except IntegrityError:
                raise AlreadyClaimedError(
                    "Chest already opened this period",
                    {"user_id": user_id, "book_id": book_id, "period": pkey},
                    user_message=ALREADY_OPENED_MESSAGE,
                ) from None

        log.info(
            "Chest opened user_id=%s book_id=%s period=%s index=%s tier=%s band=%s currency=%s items=%s",
            user_id,
            book_id,
            pkey,
            claim_index,
            tier.value,
            loot.band,
            currency,
            len(items),
        )
        return ChestOpening(
            claim_id=claim.id,
            book_id=book_id,
            period_key=pkey,
            claim_index=claim_index,
            loot=loot,
            currency=currency,
            experience=experience,
            items=items,
            used_key=key,
            credit=credit,
        )
