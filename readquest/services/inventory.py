# readquest/services/inventory.py
from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import InventoryItem
from readquest.database.tx import transactional
from readquest.services.catalog import CatalogService, FragmentReward
from readquest.services.errors import InsufficientResourceError, ValidationError
from readquest.services.subscription import SubscriptionService

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FragmentRedemption:
    months_granted: int
    fragments_spent: int
    fragments_left: int


class InventoryService:
    @staticmethod
    async def quantity(session: AsyncSession, *, user_id: int, reward_type_id: int) -> int:
        q = await session.scalar(
            select(InventoryItem.quantity).where(
                InventoryItem.user_id == user_id,
                InventoryItem.reward_type_id == reward_type_id,
            )
        )
        return int(q or 0)

    @staticmethod
    async def add(session: AsyncSession, *, user_id: int, reward_type_id: int, quantity: int) -> int:
        """Additive upsert; returns the new quantity."""
        if quantity <= 0:
            raise ValueError("quantity must be > 0")

        stmt = (
            sqlite_insert(InventoryItem)
            .values(user_id=user_id, reward_type_id=reward_type_id, quantity=quantity)
            .on_conflict_do_update(
                index_elements=["user_id", "reward_type_id"],
                set_={"quantity": InventoryItem.quantity + quantity},
            )
            .returning(InventoryItem.quantity)
        )
        new_qty = (await session.execute(stmt)).scalar_one()
        return int(new_qty)

    @staticmethod
    async def consume(session: AsyncSession, *, user_id: int, reward_type_id: int, quantity: int = 1) -> int:
        """
        Spend `quantity` units with a single conditional update.
        Returns what is left; raises InsufficientResourceError if the user holds fewer.
        """
        if quantity <= 0:
            raise ValueError("quantity must be > 0")

        left = await session.scalar(
            update(InventoryItem)
            .where(
                InventoryItem.user_id == user_id,
                InventoryItem.reward_type_id == reward_type_id,
                InventoryItem.quantity >= quantity,
            )
            .values(quantity=InventoryItem.quantity - quantity)
            .returning(InventoryItem.quantity)
        )
        if left is None:
            have = await InventoryService.quantity(session, user_id=user_id, reward_type_id=reward_type_id)
            raise InsufficientResourceError(f"reward #{reward_type_id}", quantity, have)
        return int(left)

    @staticmethod
    async def redeem_fragments(session: AsyncSession, *, user_id: int, reward_type_id: int) -> FragmentRedemption:
        """Turn every full set of fragments into one premium month."""
        descriptor = await CatalogService.get(session, reward_type_id)
        if not isinstance(descriptor.payload, FragmentReward):
            raise ValidationError("reward_type_id", "is not a fragment reward")

        per_month = descriptor.payload.fragments_per_premium_month
        have = await InventoryService.quantity(session, user_id=user_id, reward_type_id=reward_type_id)
        months = have // per_month
        if months == 0:
            raise InsufficientResourceError(descriptor.name, per_month, have)

        spent = months * per_month
        async with transactional(session):
            left = await InventoryService.consume(
                session, user_id=user_id, reward_type_id=reward_type_id, quantity=spent
            )
            await SubscriptionService.extend(session, user_id=user_id, days=30 * months)

        log.info("Fragments redeemed user_id=%s months=%s spent=%s", user_id, months, spent)
        return FragmentRedemption(months_granted=months, fragments_spent=spent, fragments_left=left)
