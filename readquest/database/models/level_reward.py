# readquest/database/models/level_reward.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from readquest.database.base import Base


class LevelReward(Base):
    __tablename__ = "level_rewards"

    id: Mapped[int] = mapped_column(primary_key=True)
    level: Mapped[int] = mapped_column(Integer, unique=True, index=True)

    currency_reward: Mapped[int] = mapped_column(Integer, default=0)
    xp_bonus: Mapped[int] = mapped_column(Integer, default=0)
    item_rewards: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    premium_days: Mapped[int] = mapped_column(Integer, default=0)

    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class PendingLevelReward(Base):
    """Queued when a user reaches a level; claimed_at set when paid out."""
    __tablename__ = "pending_level_rewards"
    __table_args__ = (UniqueConstraint("user_id", "level", name="uq_pending_level_rewards_user_level"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    level: Mapped[int] = mapped_column(Integer)
    level_reward_id: Mapped[int] = mapped_column(ForeignKey("level_rewards.id", ondelete="CASCADE"))

    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())

    level_reward: Mapped["LevelReward"] = relationship(lazy="joined")
