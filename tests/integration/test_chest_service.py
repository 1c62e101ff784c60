"""Integration tests for the chest claim guard."""
import asyncio
import random
from datetime import date

import pytest
from sqlalchemy import func, select

from readquest.database.models import ChestClaim, ChestTier, LedgerEntry, RewardCategory
from readquest.services.chest import ChestService
from readquest.services.errors import (
    AlreadyClaimedError,
    InsufficientResourceError,
    NotFoundError,
    ValidationError,
)
from readquest.services.inventory import InventoryService
from readquest.services.ledger import LedgerService
from tests.factories import (
    FixedBandRandom,
    give_item,
    make_admin,
    make_book,
    make_key,
    make_loot_entry,
    make_premium,
    make_reward,
    make_user,
)

TODAY = date(2026, 10, 19)


class TestClaimGuard:
    async def test_second_open_same_month_is_rejected(self, session):
        user = await make_user(session)
        book = await make_book(session, points=100)

        first = await ChestService.open_chest(session, user.id, book.id, today=TODAY, rng=random.Random(1))
        assert first.claim_index == 0
        assert first.period_key == "2026-10"

        with pytest.raises(AlreadyClaimedError):
            await ChestService.open_chest(session, user.id, book.id, today=date(2026, 10, 31))

    async def test_new_month_opens_again(self, session):
        user = await make_user(session)
        book = await make_book(session)

        await ChestService.open_chest(session, user.id, book.id, today=TODAY)
        nxt = await ChestService.open_chest(session, user.id, book.id, today=date(2026, 11, 1))
        assert nxt.period_key == "2026-11"
        assert nxt.claim_index == 0

    async def test_key_bypasses_guard_and_is_consumed(self, session):
        user = await make_user(session)
        book = await make_book(session)
        key = await make_key(session)
        await give_item(session, user, key, 1)

        await ChestService.open_chest(session, user.id, book.id, today=TODAY)
        with pytest.raises(AlreadyClaimedError):
            await ChestService.open_chest(session, user.id, book.id, today=TODAY)

        reopened = await ChestService.open_chest(session, user.id, book.id, today=TODAY, use_key=key.id)
        assert reopened.claim_index == 1
        assert reopened.used_key is not None and reopened.used_key.id == key.id
        assert await InventoryService.quantity(session, user_id=user.id, reward_type_id=key.id) == 0

        with pytest.raises(InsufficientResourceError):
            await ChestService.open_chest(session, user.id, book.id, today=TODAY, use_key=key.id)

        claims = await session.scalar(select(func.count(ChestClaim.id)).where(ChestClaim.user_id == user.id))
        assert claims == 2

    async def test_key_kept_when_chest_unclaimed(self, session):
        user = await make_user(session)
        book = await make_book(session)
        key = await make_key(session)
        await give_item(session, user, key, 1)

        opening = await ChestService.open_chest(session, user.id, book.id, today=TODAY, use_key=key.id)

        assert opening.claim_index == 0
        assert opening.used_key is None
        assert await InventoryService.quantity(session, user_id=user.id, reward_type_id=key.id) == 1

        # the key is still there for the reopen
        reopened = await ChestService.open_chest(session, user.id, book.id, today=TODAY, use_key=key.id)
        assert reopened.claim_index == 1
        assert await InventoryService.quantity(session, user_id=user.id, reward_type_id=key.id) == 0

    async def test_non_key_item_cannot_bypass(self, session):
        user = await make_user(session)
        book = await make_book(session)
        potion = await make_reward(session, RewardCategory.ITEM, {"consumable": True}, name="Potion")
        await give_item(session, user, potion, 3)

        with pytest.raises(ValidationError):
            await ChestService.open_chest(session, user.id, book.id, today=TODAY, use_key=potion.id)

    async def test_unknown_book(self, session):
        user = await make_user(session)
        with pytest.raises(NotFoundError):
            await ChestService.open_chest(session, user.id, 9999, today=TODAY)

    async def test_concurrent_opens_succeed_once(self, db, session):
        user = await make_user(session)
        book = await make_book(session)
        await session.commit()

        async def attempt(seed: int) -> str:
            async with db.session() as s:
                try:
                    await ChestService.open_chest(s, user.id, book.id, today=TODAY, rng=random.Random(seed))
                    await s.commit()
                    return "ok"
                except AlreadyClaimedError:
                    await s.rollback()
                    return "claimed"

        results = await asyncio.gather(attempt(1), attempt(2), attempt(3))
        assert sorted(results) == ["claimed", "claimed", "ok"]

        async with db.session() as s:
            count = await s.scalar(select(func.count(ChestClaim.id)))
            entries = await s.scalar(select(func.count(LedgerEntry.id)))
        assert count == 1
        assert entries == 1


class TestTiersAndRewards:
    async def test_free_user_gets_silver(self, session):
        user = await make_user(session)
        book = await make_book(session, points=100)

        res = await ChestService.open_chest(session, user.id, book.id, today=TODAY, rng=FixedBandRandom(100))
        assert res.tier == ChestTier.SILVER
        assert res.currency == 100
        assert res.experience == 100

        stats = await LedgerService.get_stats(session, user.id)
        assert stats.balance == 100
        assert stats.experience == 100

    async def test_premium_user_gets_gold(self, session):
        user = await make_user(session)
        await make_premium(session, user)
        book = await make_book(session, points=100)

        res = await ChestService.open_chest(session, user.id, book.id, today=TODAY, rng=FixedBandRandom(200))
        assert res.tier == ChestTier.GOLD
        assert res.currency == 200

    async def test_admin_forces_gold_max_and_skips_guard(self, session):
        user = await make_user(session)
        await make_admin(session, user)
        book = await make_book(session, points=100)

        first = await ChestService.open_chest(session, user.id, book.id, today=TODAY, is_admin=True)
        second = await ChestService.open_chest(session, user.id, book.id, today=TODAY, is_admin=True)

        assert first.tier == ChestTier.GOLD and first.loot.band == 210
        assert first.currency == 210
        assert [first.claim_index, second.claim_index] == [0, 1]

    async def test_fired_items_go_to_inventory_and_currency_to_ledger(self, session):
        user = await make_user(session)
        book = await make_book(session, points=100, genres=["Fantasy"])
        fragment = await make_reward(session, RewardCategory.FRAGMENT, name="Fragment")
        coins = await make_reward(session, RewardCategory.CURRENCY, {"amount": 25}, name="Coin pouch")
        gold_only = await make_reward(session, RewardCategory.CARD, {"collection": "Heroes"}, name="Hero card")

        await make_loot_entry(session, fragment, min_quantity=2, max_quantity=2)
        await make_loot_entry(session, fragment, genre="fantasy", min_quantity=1, max_quantity=1)
        await make_loot_entry(session, coins, book_id=book.id)
        await make_loot_entry(session, gold_only, tier=ChestTier.GOLD)

        res = await ChestService.open_chest(session, user.id, book.id, today=TODAY, rng=FixedBandRandom(100))

        assert len(res.loot.fired) == 3
        assert await InventoryService.quantity(session, user_id=user.id, reward_type_id=fragment.id) == 3
        assert await InventoryService.quantity(session, user_id=user.id, reward_type_id=gold_only.id) == 0
        assert res.currency == 125
        assert (await LedgerService.get_stats(session, user.id)).balance == 125
