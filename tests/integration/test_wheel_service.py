"""Integration tests for the wheel resolver."""
import asyncio
import random
from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from readquest.database.models import (
    SegmentKind,
    SkillBonusType,
    SpinHistory,
    SpinKind,
    StreakBonus,
    StreakBonusType,
    WheelConfig,
)
from readquest.services.errors import AlreadyClaimedError, ForbiddenError
from readquest.services.gift_cards import GiftCardService
from readquest.services.ledger import LedgerService
from readquest.services.inventory import InventoryService
from readquest.services.streak import StreakService
from readquest.services.wheel import WheelService
from readquest.utils.dates import utc_now
from tests.factories import make_key, make_premium, make_user, unlock_skill

TODAY = date(2026, 10, 19)  # Monday


async def _config(session, segments, *, premium_only=False):
    row = WheelConfig(
        name="Test wheel",
        start_date=TODAY - timedelta(days=7),
        end_date=TODAY + timedelta(days=7),
        is_active=True,
        premium_only=premium_only,
        segments=segments,
    )
    session.add(row)
    await session.flush()
    return row


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[int, str]] = []

    async def send_gift_card(self, telegram_id, card):
        if self.fail:
            raise ConnectionError("telegram down")
        self.sent.append((telegram_id, card.code))


class TestSpinGuard:
    async def test_one_free_spin_per_day(self, session):
        user = await make_user(session)

        await WheelService.spin(session, user.id, today=TODAY, rng=random.Random(1))
        with pytest.raises(AlreadyClaimedError):
            await WheelService.spin(session, user.id, today=TODAY, rng=random.Random(2))

        tomorrow = await WheelService.spin(session, user.id, today=TODAY + timedelta(days=1))
        assert tomorrow.new_streak == 2

    async def test_concurrent_free_spins_succeed_once(self, db, session):
        user = await make_user(session)
        await session.commit()

        async def attempt(seed: int) -> str:
            async with db.session() as s:
                try:
                    await WheelService.spin(s, user.id, today=TODAY, rng=random.Random(seed))
                    await s.commit()
                    return "ok"
                except AlreadyClaimedError:
                    await s.rollback()
                    return "spun"

        results = await asyncio.gather(*(attempt(seed) for seed in range(4)))
        assert sorted(results) == ["ok", "spun", "spun", "spun"]

        async with db.session() as s:
            spins = await s.scalar(select(func.count(SpinHistory.id)).where(SpinHistory.user_id == user.id))
            streak = await StreakService.get(s, user.id)
        assert spins == 1
        assert streak.current_streak == 1

    async def test_paid_spins_are_unlimited(self, session):
        user = await make_user(session)

        await WheelService.spin(session, user.id, today=TODAY)
        for _ in range(3):
            res = await WheelService.spin(session, user.id, SpinKind.PAID, today=TODAY)
            assert res.new_streak == 1

        count = await session.scalar(select(func.count(SpinHistory.id)).where(SpinHistory.user_id == user.id))
        assert count == 4

    async def test_premium_only_config_rejects_free_users(self, session):
        user = await make_user(session)
        await _config(session, [{"kind": "currency", "value": 100, "weight": 100}], premium_only=True)

        with pytest.raises(ForbiddenError):
            await WheelService.spin(session, user.id, today=TODAY)

        # the rejected spin did not consume the daily free spin
        await make_premium(session, user)
        res = await WheelService.spin(session, user.id, today=TODAY)
        assert res.reward_value == 100

    async def test_exactly_one_segment_recorded(self, session):
        user = await make_user(session)
        res = await WheelService.spin(session, user.id, today=TODAY, rng=random.Random(3))

        hist = await session.get(SpinHistory, res.spin_id)
        assert hist.segment_index == res.segment_index
        assert hist.reward_kind == res.segment.kind


class TestBonuses:
    async def test_quantity_boost_rounds_up_currency(self, session):
        user = await make_user(session)
        await _config(session, [{"kind": "currency", "value": 201, "weight": 100}])
        session.add(StreakBonus(streak_level=1, bonus_type=StreakBonusType.QUANTITY_BOOST, bonus_value=1.5))
        await session.flush()

        res = await WheelService.spin(session, user.id, today=TODAY)
        assert res.reward_value == 302
        assert res.streak_bonus is not None
        assert (await LedgerService.get_stats(session, user.id)).balance == 302

    async def test_highest_reached_streak_bonus_applies(self, session):
        user = await make_user(session)
        await _config(session, [{"kind": "experience", "value": 10, "weight": 100}])
        session.add_all(
            [
                StreakBonus(streak_level=1, bonus_type=StreakBonusType.QUANTITY_BOOST, bonus_value=2),
                StreakBonus(streak_level=2, bonus_type=StreakBonusType.QUANTITY_BOOST, bonus_value=3),
                StreakBonus(streak_level=5, bonus_type=StreakBonusType.QUANTITY_BOOST, bonus_value=10),
            ]
        )
        await session.flush()

        day1 = await WheelService.spin(session, user.id, today=TODAY)
        day2 = await WheelService.spin(session, user.id, today=TODAY + timedelta(days=1))
        assert day1.reward_value == 20
        assert day2.reward_value == 30

    async def test_skill_bonuses_on_wheel(self, session):
        user = await make_user(session)
        await _config(session, [{"kind": "currency", "value": 100, "weight": 100}])
        await unlock_skill(session, user, SkillBonusType.CURRENCY_BY_DAY, {"percentage": 20, "days": [0]})

        res = await WheelService.spin(session, user.id, today=TODAY)
        assert res.reward_value == 120
        assert len(res.applied_bonuses) == 1

    async def test_item_segment_lands_in_inventory(self, session):
        user = await make_user(session)
        key = await make_key(session)
        await _config(session, [{"kind": "item", "reward_type_id": key.id, "quantity": 2, "weight": 100}])

        res = await WheelService.spin(session, user.id, today=TODAY)
        assert res.segment.kind == SegmentKind.ITEM
        assert await InventoryService.quantity(session, user_id=user.id, reward_type_id=key.id) == 2


class TestGiftCards:
    async def test_gift_card_minted_not_sent(self, session):
        user = await make_user(session, telegram_id=555)
        await _config(session, [{"kind": "gift_card", "weight": 100}])

        res = await WheelService.spin(session, user.id, today=TODAY, gift_card_value_cents=2500)

        assert res.gift_card is not None
        assert res.gift_card.amount_cents == 2500
        assert (res.gift_card.expires_at - utc_now()).days in (364, 365)

        notifier = RecordingNotifier()
        assert await GiftCardService.deliver(notifier, 555, res.gift_card) is True
        assert notifier.sent == [(555, res.gift_card.code)]

    async def test_failed_delivery_keeps_card_listed(self, session):
        user = await make_user(session)
        await _config(session, [{"kind": "gift_card", "weight": 100}])

        res = await WheelService.spin(session, user.id, today=TODAY)
        delivered = await GiftCardService.deliver(RecordingNotifier(fail=True), user.telegram_id, res.gift_card)

        assert delivered is False
        listed = await GiftCardService.list_for_user(session, user.id)
        assert [c.code for c in listed] == [res.gift_card.code]

    async def test_listing_skips_redeemed_and_expired(self, session):
        user = await make_user(session)
        other = await make_user(session)
        await _config(session, [{"kind": "gift_card", "weight": 100}])

        old = await GiftCardService.mint(session, user_id=user.id, amount_cents=500, validity_days=1)
        used = await GiftCardService.mint(session, user_id=user.id, amount_cents=500)
        used.redeemed_at = utc_now()
        await GiftCardService.mint(session, user_id=other.id, amount_cents=500)
        fresh = await GiftCardService.mint(session, user_id=user.id, amount_cents=700)
        res = await WheelService.spin(session, user.id, today=TODAY)
        await session.flush()

        listed = await GiftCardService.list_for_user(session, user.id, now=utc_now() + timedelta(days=2))
        assert [c.id for c in listed] == [res.gift_card.id, fresh.id]
        assert old.id not in [c.id for c in listed]

    async def test_quantity_boost_never_touches_gift_cards(self, session):
        user = await make_user(session)
        await _config(session, [{"kind": "gift_card", "weight": 100}])
        session.add(StreakBonus(streak_level=1, bonus_type=StreakBonusType.QUANTITY_BOOST, bonus_value=3))
        await session.flush()

        res = await WheelService.spin(session, user.id, today=TODAY, gift_card_value_cents=1000)
        assert res.gift_card.amount_cents == 1000
        assert res.reward_value == 1000
