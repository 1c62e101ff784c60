# readquest/utils/reply.py
from __future__ import annotations

from aiogram.types import Message

from readquest.keyboards.main import main_menu_kb
from readquest.services.errors import EngineError


async def reply_safe(message: Message, text: str, **kwargs) -> None:
    """
    Safe reply helper:
    - menu keyboard only in private chats, never in groups
    """
    if message.chat.type == "private":
        kwargs.setdefault("reply_markup", main_menu_kb())
    else:
        kwargs.setdefault("reply_markup", None)

    await message.answer(text, **kwargs)


async def reply_error(message: Message, err: EngineError) -> None:
    await reply_safe(message, err.user_message)
