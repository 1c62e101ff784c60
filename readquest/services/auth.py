# readquest/services/auth.py
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import Admin, User


@dataclass(frozen=True, slots=True)
class AuthResult:
    is_root: bool
    is_admin: bool
    role: str  # "root" | "admin" | "user"


class AuthService:
    def __init__(self, root_admin_ids: tuple[int, ...] = ()) -> None:
        self.root_admin_ids = root_admin_ids

    async def resolve(self, session: AsyncSession, user_id: int) -> AuthResult:
        user = await session.get(User, user_id)
        # Root admins come from env, always takes precedence.
        if user is not None and user.telegram_id is not None and user.telegram_id in self.root_admin_ids:
            return AuthResult(is_root=True, is_admin=True, role="root")

        admin = await session.scalar(select(Admin).where(Admin.user_id == user_id))
        if admin is None:
            return AuthResult(is_root=False, is_admin=False, role="user")

        return AuthResult(is_root=False, is_admin=True, role=admin.role.value)

    async def is_admin(self, session: AsyncSession, user_id: int) -> bool:
        return (await self.resolve(session, user_id)).is_admin
