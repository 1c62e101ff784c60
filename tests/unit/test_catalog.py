"""Unit tests for reward metadata parsing."""
import pytest

from readquest.database.models import RewardCategory
from readquest.services.catalog import (
    CardReward,
    CurrencyReward,
    FragmentReward,
    ItemReward,
    parse_payload,
)
from readquest.services.errors import ValidationError


class TestParsePayload:
    def test_variants(self):
        assert parse_payload(RewardCategory.CURRENCY, {"amount": 50}) == CurrencyReward(50)
        assert parse_payload(RewardCategory.FRAGMENT, {}) == FragmentReward(12)
        assert parse_payload(RewardCategory.CARD, {"collection": "Heroes", "card_number": 3}) == CardReward("Heroes", 3)
        assert parse_payload(RewardCategory.ITEM, {"unlocks_chest": True}) == ItemReward(consumable=True, unlocks_chest=True)

    def test_extra_keys_do_not_leak_between_categories(self):
        """A card cannot carry an item flag: the variant simply has no such field."""
        card = parse_payload(RewardCategory.CARD, {"collection": "Heroes", "unlocks_chest": True})
        assert not hasattr(card, "unlocks_chest")

    @pytest.mark.parametrize(
        "category,meta",
        [
            (RewardCategory.CURRENCY, {}),
            (RewardCategory.CURRENCY, {"amount": -5}),
            (RewardCategory.EXPERIENCE, {"amount": "lots"}),
            (RewardCategory.CARD, {"card_number": 1}),
            (RewardCategory.FRAGMENT, {"fragments_per_premium_month": 0}),
            (RewardCategory.ITEM, {"unlocks_chest": True, "consumable": False}),
        ],
    )
    def test_invalid(self, category, meta):
        with pytest.raises(ValidationError):
            parse_payload(category, meta)
