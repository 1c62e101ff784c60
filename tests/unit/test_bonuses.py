"""Unit tests for skill bonus parsing and context filters."""
from fractions import Fraction

import pytest

from readquest.database.models import SkillBonusType
from readquest.services.bonuses import (
    SkillBonus,
    currency_multiplier,
    drop_chance_bonus,
    experience_multiplier,
    parse_bonus_config,
)
from readquest.services.errors import ValidationError


def _b(bonus_type, pct, **kw):
    return SkillBonus(skill_id=1, skill_name="s", bonus_type=bonus_type, percentage=Fraction(pct), **kw)


class TestParseBonusConfig:
    def test_day_bonus(self):
        out = parse_bonus_config(SkillBonusType.CURRENCY_BY_DAY, {"percentage": 10, "days": [5, 6]})
        assert out == {"percentage": Fraction(10), "days": frozenset({5, 6})}

    def test_genre_accepts_single_genre_key(self):
        out = parse_bonus_config(SkillBonusType.CURRENCY_BY_GENRE, {"percentage": "7.5", "genre": " Fantasy "})
        assert out["genres"] == frozenset({"fantasy"})
        assert out["percentage"] == Fraction(15, 2)

    @pytest.mark.parametrize(
        "bonus_type,config",
        [
            (SkillBonusType.CURRENCY_BY_DAY, {"percentage": 10}),
            (SkillBonusType.CURRENCY_BY_DAY, {"percentage": 10, "days": [7]}),
            (SkillBonusType.CURRENCY_BY_GENRE, {"percentage": 10, "genres": []}),
            (SkillBonusType.DROP_CHANCE_BOOST, {"percentage": 3}),
            (SkillBonusType.EXPERIENCE_BOOST, {"percentage": 0}),
            (SkillBonusType.EXPERIENCE_BOOST, {}),
        ],
    )
    def test_invalid_configs(self, bonus_type, config):
        with pytest.raises(ValidationError):
            parse_bonus_config(bonus_type, config)


class TestFilters:
    def test_empty_list_is_neutral(self):
        assert currency_multiplier([], 3, ["fantasy"]) == 1
        assert experience_multiplier([]) == 1
        assert drop_chance_bonus([], 7) == 0

    def test_bonuses_stack(self):
        bonuses = [
            _b(SkillBonusType.CURRENCY_BY_DAY, 10, days=frozenset({2})),
            _b(SkillBonusType.CURRENCY_BY_GENRE, 5, genres=frozenset({"sf"})),
            _b(SkillBonusType.EXPERIENCE_BOOST, 20),
            _b(SkillBonusType.DROP_CHANCE_BOOST, 4, reward_type_id=7),
            _b(SkillBonusType.DROP_CHANCE_BOOST, 1, reward_type_id=7),
        ]
        assert currency_multiplier(bonuses, 2, ["SF"]) == Fraction(115, 100)
        assert currency_multiplier(bonuses, 3, ["romance"]) == 1
        assert experience_multiplier(bonuses) == Fraction(120, 100)
        assert drop_chance_bonus(bonuses, 7) == 5
        assert drop_chance_bonus(bonuses, 8) == 0
