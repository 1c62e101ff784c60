# readquest/handlers/common.py
from __future__ import annotations

import logging

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import ErrorEvent, Message

from readquest.services.errors import EngineError
from readquest.utils.reply import reply_safe

log = logging.getLogger(__name__)

router = Router(name="common")

GENERIC_ERROR_TEXT = "⚠️ Something went wrong. Please try again later."


@router.message(CommandStart())
async def cmd_start(message: Message) -> None:
    await reply_safe(
        message,
        "📚 Welcome to ReadQuest!\n\n"
        "Finish books, open chests, spin the wheel every day and climb the levels.\n"
        "Use /help to see commands.",
    )


@router.message(Command("help"))
async def cmd_help(message: Message) -> None:
    await reply_safe(
        message,
        "📌 Available commands:\n"
        "/spin - daily wheel spin\n"
        "/done &lt;book_id&gt; - mark a book as read (opens its chest)\n"
        "/chest &lt;book_id&gt; [key_id] - open a book's chest\n"
        "/recover - buy back a broken streak\n"
        "/profile - level, Orydors, streak\n"
        "/challenges - active challenges\n"
        "/claim &lt;challenge_id&gt; - claim a completed challenge\n"
        "/levelrewards - claim level-up rewards\n"
        "/giftcards - your unused gift card codes",
        parse_mode="HTML",
    )


@router.errors()
async def on_error(event: ErrorEvent) -> None:
    err = event.exception
    log.exception("Unhandled error while processing update id=%s", event.update.update_id, exc_info=err)
    message = event.update.message
    if message is not None:
        await message.answer(err.user_message if isinstance(err, EngineError) else GENERIC_ERROR_TEXT)
