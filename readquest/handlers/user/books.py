# readquest/handlers/user/books.py
from __future__ import annotations

from datetime import date

from aiogram import Router
from aiogram.filters import Command, CommandObject
from aiogram.types import Message
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.config.settings import Settings
from readquest.services.chest import ChestOpening, ChestService
from readquest.services.errors import EngineError
from readquest.services.progression import ProgressionService
from readquest.utils.ensure_user import ensure_user
from readquest.utils.reply import reply_error, reply_safe

router = Router()

CHEST_USAGE = "Usage: <code>/chest &lt;book_id&gt; [key_id]</code>"
DONE_USAGE = "Usage: <code>/done &lt;book_id&gt;</code>"


def _parse_ints(args: str | None) -> list[int] | None:
    parts = (args or "").split()
    try:
        return [int(p) for p in parts]
    except ValueError:
        return None


def format_chest(opening: ChestOpening) -> str:
    tier = "🥇 Gold" if opening.tier.value == "gold" else "🥈 Silver"
    lines = [
        f"📦 <b>{tier} chest</b> ({opening.loot.band}%)",
        f"🪙 +{opening.currency} Orydors",
        f"✨ +{opening.experience} XP",
    ]
    for item in opening.items:
        lines.append(f"🎁 {item.reward.name} ×{item.quantity}")
    if opening.used_key is not None:
        lines.append(f"🗝 Used: {opening.used_key.name}")
    if opening.credit is not None and opening.credit.did_level_up:
        lines.append(f"🆙 Level up! You are now level <b>{opening.credit.level_after}</b>.")
    return "\n".join(lines)


@router.message(Command("chest"))
async def chest_cmd(
    message: Message,
    command: CommandObject,
    session: AsyncSession,
    settings: Settings,
    today: date,
    is_admin: bool,
) -> None:
    user = await ensure_user(session, message)
    args = _parse_ints(command.args)
    if not args or len(args) > 2:
        await reply_safe(message, CHEST_USAGE, parse_mode="HTML")
        return

    book_id = args[0]
    key_id = args[1] if len(args) == 2 else None

    try:
        opening = await ChestService.open_chest(
            session,
            user.id,
            book_id,
            use_key=key_id,
            today=today,
            is_admin=is_admin,
            period=settings.chest_period,
        )
    except EngineError as e:
        await reply_error(message, e)
        return

    await reply_safe(message, format_chest(opening), parse_mode="HTML")


@router.message(Command("done"))
async def done_cmd(
    message: Message,
    command: CommandObject,
    session: AsyncSession,
    settings: Settings,
    today: date,
    is_admin: bool,
) -> None:
    user = await ensure_user(session, message)
    args = _parse_ints(command.args)
    if not args or len(args) != 1:
        await reply_safe(message, DONE_USAGE, parse_mode="HTML")
        return

    try:
        res = await ProgressionService.complete_book(
            session,
            user.id,
            args[0],
            today=today,
            is_admin=is_admin,
            period=settings.chest_period,
        )
    except EngineError as e:
        await reply_error(message, e)
        return

    lines = ["📖 <b>Book completed!</b>"]
    for p in res.completed_objectives:
        lines.append(f"🎯 Objective #{p.objective_id} completed ({p.current_count}/{p.target_count})")
    if res.chest is not None:
        lines.append("")
        lines.append(format_chest(res.chest))
    elif res.chest_already_claimed:
        lines.append("📦 This book's chest was already opened this period.")

    await reply_safe(message, "\n".join(lines), parse_mode="HTML")
