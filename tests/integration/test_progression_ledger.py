"""Ledger credits, level rewards, skill unlocks, fragments and book completion."""
from datetime import date

import pytest
from sqlalchemy import func, select

from readquest.database.models import (
    LedgerEntry,
    LedgerReason,
    ObjectiveType,
    RewardCategory,
    Skill,
    SkillBonusType,
    SkillPath,
)
from readquest.services.bonuses import SkillBonusService
from readquest.services.errors import AlreadyClaimedError, InsufficientResourceError, NotFoundError
from readquest.services.inventory import InventoryService
from readquest.services.ledger import LedgerService
from readquest.services.level_rewards import LevelRewardService
from readquest.services.progression import ProgressionService
from readquest.services.subscription import SubscriptionService
from tests.factories import (
    give_item,
    make_book,
    make_challenge,
    make_level_reward,
    make_reward,
    make_user,
    set_stats,
    unlock_skill,
)

TODAY = date(2026, 10, 19)


class TestLedger:
    async def test_credit_accumulates_and_logs(self, session):
        user = await make_user(session)
        await LedgerService.credit(session, user_id=user.id, reason=LedgerReason.CHEST, currency=40, experience=30)
        res = await LedgerService.credit(session, user_id=user.id, reason=LedgerReason.WHEEL, currency=10)

        assert (res.balance_before, res.balance_after) == (40, 50)
        assert res.xp_after == 30
        assert not res.did_level_up
        count = await session.scalar(select(func.count(LedgerEntry.id)).where(LedgerEntry.user_id == user.id))
        assert count == 2

    async def test_level_up_queues_reward_once(self, session):
        user = await make_user(session)
        await make_level_reward(session, 2, currency_reward=25)
        await make_level_reward(session, 3, currency_reward=75)

        res = await LedgerService.credit(session, user_id=user.id, reason=LedgerReason.CHEST, experience=260)
        assert res.new_levels == [2, 3]
        assert [p.level for p in await LevelRewardService.pending(session, user.id)] == [2, 3]

        claim = await LevelRewardService.claim_pending(session, user.id)
        assert claim.levels == [2, 3]
        assert claim.currency == 100
        assert (await LedgerService.get_stats(session, user.id)).balance == 100

        again = await LevelRewardService.claim_pending(session, user.id)
        assert again.is_empty

    async def test_debit_never_goes_negative(self, session):
        user = await make_user(session)
        await set_stats(session, user, balance=10)
        with pytest.raises(InsufficientResourceError):
            await LedgerService.debit(session, user_id=user.id, amount=11, reason=LedgerReason.STREAK_RECOVERY)
        assert (await LedgerService.get_stats(session, user.id)).balance == 10

        left = await LedgerService.debit(session, user_id=user.id, amount=10, reason=LedgerReason.STREAK_RECOVERY)
        assert left == 0


class TestSkills:
    async def _skill(self, session, *, cost: int = 1, active: bool = True) -> Skill:
        path = SkillPath(name="Explorer")
        session.add(path)
        await session.flush()
        skill = Skill(
            path_id=path.id,
            name="Lucky",
            bonus_type=SkillBonusType.EXPERIENCE_BOOST,
            bonus_config={"percentage": 5},
            skill_point_cost=cost,
            is_active=active,
        )
        session.add(skill)
        await session.flush()
        return skill

    async def test_unlock_spends_points_once(self, session):
        user = await make_user(session)
        skill = await self._skill(session)

        with pytest.raises(InsufficientResourceError):
            await SkillBonusService.unlock(session, user_id=user.id, skill_id=skill.id)

        await set_stats(session, user, experience=250)  # level 3 -> two points
        bonus = await SkillBonusService.unlock(session, user_id=user.id, skill_id=skill.id)
        assert bonus.skill_id == skill.id
        assert await SkillBonusService.available_points(session, user.id) == 1

        with pytest.raises(AlreadyClaimedError):
            await SkillBonusService.unlock(session, user_id=user.id, skill_id=skill.id)

    async def test_unknown_or_inactive_skill(self, session):
        user = await make_user(session)
        skill = await self._skill(session, active=False)
        with pytest.raises(NotFoundError):
            await SkillBonusService.unlock(session, user_id=user.id, skill_id=skill.id)
        with pytest.raises(NotFoundError):
            await SkillBonusService.unlock(session, user_id=user.id, skill_id=12345)

    async def test_active_bonuses(self, session):
        user = await make_user(session)
        assert await SkillBonusService.active_bonuses(session, user.id) == []

        await unlock_skill(session, user, SkillBonusType.EXPERIENCE_BOOST, {"percentage": 5}, name="On")
        off = await unlock_skill(session, user, SkillBonusType.EXPERIENCE_BOOST, {"percentage": 50}, name="Off")
        off.is_active = False
        await session.flush()

        bonuses = await SkillBonusService.active_bonuses(session, user.id)
        assert [b.skill_name for b in bonuses] == ["On"]


class TestFragments:
    async def test_full_sets_become_premium_months(self, session):
        user = await make_user(session)
        fragment = await make_reward(session, RewardCategory.FRAGMENT, name="Shard")
        await give_item(session, user, fragment, 25)

        res = await InventoryService.redeem_fragments(session, user_id=user.id, reward_type_id=fragment.id)

        assert (res.months_granted, res.fragments_spent, res.fragments_left) == (2, 24, 1)
        assert await SubscriptionService.is_premium(session, user.id)

        with pytest.raises(InsufficientResourceError):
            await InventoryService.redeem_fragments(session, user_id=user.id, reward_type_id=fragment.id)


class TestCompleteBook:
    async def test_progress_and_chest_then_reread(self, session, rng):
        user = await make_user(session)
        book = await make_book(session, points=100)
        await make_challenge(session, [{"objective_type": ObjectiveType.READ_ANY_BOOKS, "target_count": 1}])

        first = await ProgressionService.complete_book(session, user.id, book.id, today=TODAY, rng=rng)
        assert first.chest is not None
        assert [p.just_completed for p in first.completed_objectives] == [True]

        second = await ProgressionService.complete_book(session, user.id, book.id, today=TODAY, rng=rng)
        assert second.chest is None
        assert second.chest_already_claimed
        assert second.completed_objectives == []

    async def test_unknown_book(self, session):
        user = await make_user(session)
        with pytest.raises(NotFoundError):
            await ProgressionService.complete_book(session, user.id, 999, today=TODAY)

    async def test_chapter_progress(self, session):
        user = await make_user(session)
        book = await make_book(session, genres=["mystery"])
        await make_challenge(
            session,
            [{"objective_type": ObjectiveType.READ_CHAPTERS_GENRE, "target_genre": "mystery", "target_count": 3}],
        )
        (res,) = await ProgressionService.complete_chapter(session, user.id, book.id)
        assert res.current_count == 1
