# readquest/services/guilds.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import GuildMember


class GuildService:
    """Membership lookup only; guild social features live elsewhere."""

    @staticmethod
    async def guild_of(session: AsyncSession, user_id: int) -> int | None:
        return await session.scalar(select(GuildMember.guild_id).where(GuildMember.user_id == user_id))
