"""Environment parsing for Settings."""
import pytest

from readquest.config import Settings


class TestSettingsLoad:
    def test_defaults(self):
        s = Settings.load({"BOT_TOKEN": " 123:abc "})
        assert s.bot_token == "123:abc"
        assert s.database_url.startswith("sqlite+aiosqlite")
        assert s.streak_recovery_cost == 1650
        assert s.chest_period == "month"
        assert s.wheel_key_reward_type_id is None
        assert not s.is_dev

    def test_missing_token(self):
        with pytest.raises(RuntimeError, match="BOT_TOKEN"):
            Settings.load({})

    def test_admin_ids_any_separator(self):
        s = Settings.load({"BOT_TOKEN": "t", "ROOT_ADMIN_IDS": "[951258732, '123'\n456]"})
        assert s.root_admin_ids == (951258732, 123, 456)

    @pytest.mark.parametrize(
        "key, value",
        [
            ("CHEST_PERIOD", "year"),
            ("STREAK_RECOVERY_COST", "0"),
            ("GIFT_CARD_VALUE_CENTS", "ten"),
            ("TIMEZONE", "Mars/Olympus_Mons"),
        ],
    )
    def test_rejects_bad_values(self, key, value):
        with pytest.raises(RuntimeError):
            Settings.load({"BOT_TOKEN": "t", key: value})

    def test_overrides(self):
        s = Settings.load(
            {
                "BOT_TOKEN": "t",
                "CHEST_PERIOD": "Week",
                "TIMEZONE": "Europe/Paris",
                "ENVIRONMENT": "development",
                "WHEEL_KEY_REWARD_TYPE_ID": "7",
            }
        )
        assert (s.chest_period, s.timezone, s.wheel_key_reward_type_id) == ("week", "Europe/Paris", 7)
        assert s.is_dev
