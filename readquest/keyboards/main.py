# readquest/keyboards/main.py
from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

BTN_SPIN = "🎡 Spin"
BTN_PROFILE = "👤 Profile"
BTN_CHALLENGES = "🎯 Challenges"
BTN_LEVEL_REWARDS = "🎁 Level rewards"
BTN_RECOVER = "🔥 Recover streak"
BTN_GIFT_CARDS = "💳 Gift cards"


def main_menu_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text=BTN_SPIN), KeyboardButton(text=BTN_PROFILE)],
            [KeyboardButton(text=BTN_CHALLENGES), KeyboardButton(text=BTN_LEVEL_REWARDS)],
            [KeyboardButton(text=BTN_RECOVER), KeyboardButton(text=BTN_GIFT_CARDS)],
        ],
        resize_keyboard=True,
        input_field_placeholder="Choose an action…",
        selective=False,
        one_time_keyboard=False,
    )
