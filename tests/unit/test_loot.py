"""Unit tests for the pure chest roll."""
import random
from collections import Counter
from datetime import date
from fractions import Fraction
from types import SimpleNamespace

from readquest.database.models import ChestTier, SkillBonusType
from readquest.services.bonuses import SkillBonus
from readquest.services.loot import (
    CHEST_BANDS,
    LootCandidate,
    merge_scopes,
    pick_band,
    resolve_loot,
    roll_candidate,
)
from tests.factories import FixedBandRandom

SATURDAY = date(2026, 10, 17)  # weekday() == 5


def _bonus(bonus_type, pct, **kw):
    return SkillBonus(skill_id=kw.pop("skill_id", 1), skill_name="s", bonus_type=bonus_type, percentage=Fraction(pct), **kw)


def _entry(id, reward_type_id, *, book_id=None, genre=None, tier=ChestTier.SILVER, chance=50.0):
    return SimpleNamespace(
        id=id,
        reward_type_id=reward_type_id,
        book_id=book_id,
        genre=genre,
        chest_tier=tier,
        drop_chance=chance,
        min_quantity=1,
        max_quantity=3,
    )


class TestCurrency:
    def test_day_bonuses_scenario(self):
        """Base 100, two day bonuses totalling +30%, band 100% -> 130."""
        bonuses = [
            _bonus(SkillBonusType.CURRENCY_BY_DAY, 10, days=frozenset({5}), skill_id=1),
            _bonus(SkillBonusType.CURRENCY_BY_DAY, 20, days=frozenset({5, 6}), skill_id=2),
        ]
        res = resolve_loot(100, [], ChestTier.SILVER, [], bonuses, today=SATURDAY, rng=FixedBandRandom(100))
        assert res.band == 100
        assert res.currency == 130
        assert len(res.applied_bonuses) == 2

    def test_no_bonus_multiplier_is_exactly_one(self):
        for band in CHEST_BANDS[ChestTier.SILVER] + CHEST_BANDS[ChestTier.GOLD]:
            res = resolve_loot(137, [], ChestTier.SILVER, [], [], today=SATURDAY, rng=FixedBandRandom(band))
            assert res.currency == 137 * band // 100
            assert res.experience == res.currency

    def test_day_bonus_ignored_on_other_days(self):
        bonuses = [_bonus(SkillBonusType.CURRENCY_BY_DAY, 50, days=frozenset({0}))]
        res = resolve_loot(100, [], ChestTier.SILVER, [], bonuses, today=SATURDAY, rng=FixedBandRandom(100))
        assert res.currency == 100

    def test_genre_bonus_matches_case_insensitively(self):
        bonuses = [_bonus(SkillBonusType.CURRENCY_BY_GENRE, 15, genres=frozenset({"fantasy"}))]
        res = resolve_loot(200, ["Fantasy"], ChestTier.SILVER, [], bonuses, today=SATURDAY, rng=FixedBandRandom(100))
        assert res.currency == 230

    def test_experience_boost_only_touches_experience(self):
        bonuses = [_bonus(SkillBonusType.EXPERIENCE_BOOST, 25)]
        res = resolve_loot(100, [], ChestTier.SILVER, [], bonuses, today=SATURDAY, rng=FixedBandRandom(100))
        assert res.currency == 100
        assert res.experience == 125

    def test_floor_is_exact(self):
        """105% of 33 with +10% = 38.115 -> 38 (no float drift)."""
        bonuses = [_bonus(SkillBonusType.CURRENCY_BY_DAY, 10, days=frozenset({5}))]
        res = resolve_loot(33, [], ChestTier.SILVER, [], bonuses, today=SATURDAY, rng=FixedBandRandom(105))
        assert res.currency == 38


class TestBands:
    def test_force_max_uses_highest_band(self):
        rng = random.Random(0)
        assert pick_band(ChestTier.GOLD, rng, force_max=True) == 210
        assert pick_band(ChestTier.SILVER, rng, force_max=True) == 105

    def test_band_distribution(self):
        rng = random.Random(99)
        counts = Counter(pick_band(ChestTier.GOLD, rng) for _ in range(8000))
        assert set(counts) == {190, 200, 210}
        assert 0.45 < counts[200] / 8000 < 0.55
        assert 0.20 < counts[190] / 8000 < 0.30


class TestDrops:
    def test_scopes_are_not_deduplicated(self):
        entries = [
            _entry(1, 7),
            _entry(2, 7, genre="fantasy"),
            _entry(3, 7, book_id=42),
            _entry(4, 7, book_id=43),
            _entry(5, 7, genre="horror"),
            _entry(6, 7, tier=ChestTier.GOLD),
        ]
        merged = merge_scopes(entries, book_id=42, genres=["Fantasy"], tier=ChestTier.SILVER)
        assert [c.entry_id for c in merged] == [1, 2, 3]
        assert [c.scope for c in merged] == ["global", "genre:fantasy", "book:42"]

    def test_drop_chance_boost_applies_to_target_reward(self):
        candidate = LootCandidate(entry_id=1, reward_type_id=7, drop_chance=10, min_quantity=1, max_quantity=1, scope="global")
        boost = [_bonus(SkillBonusType.DROP_CHANCE_BOOST, 90, reward_type_id=7)]
        other = [_bonus(SkillBonusType.DROP_CHANCE_BOOST, 90, reward_type_id=8)]

        rng = random.Random(5)
        boosted = resolve_loot(0, [], ChestTier.SILVER, [candidate] * 200, boost, today=SATURDAY, rng=rng)
        assert len(boosted.fired) == 200

        rng = random.Random(5)
        plain = resolve_loot(0, [], ChestTier.SILVER, [candidate] * 200, other, today=SATURDAY, rng=rng)
        assert 5 < len(plain.fired) < 40

    def test_roll_quantity_within_range(self):
        candidate = LootCandidate(entry_id=1, reward_type_id=7, drop_chance=100, min_quantity=2, max_quantity=4, scope="global")
        rng = random.Random(3)
        quantities = {roll_candidate(candidate, 0, rng).quantity for _ in range(200)}
        assert quantities == {2, 3, 4}

    def test_full_chance_always_fires(self):
        candidate = LootCandidate(entry_id=1, reward_type_id=7, drop_chance=100, min_quantity=1, max_quantity=1, scope="global")
        rng = random.Random(11)
        assert all(roll_candidate(candidate, 0, rng) is not None for _ in range(500))
