# readquest/database/models/streak.py
from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Integer, func
from sqlalchemy.orm import Mapped, mapped_column

from readquest.database.base import Base


class UserStreak(Base):
    """
    Consecutive-day wheel participation.
    broken_streak_value holds the streak lost on the last break (recoverable for a fee).
    """
    __tablename__ = "user_streaks"
    __table_args__ = (CheckConstraint("current_streak >= 0", name="current_streak_nonneg"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True)

    current_streak: Mapped[int] = mapped_column(Integer, default=0)
    max_streak: Mapped[int] = mapped_column(Integer, default=0)
    last_participation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    broken_streak_value: Mapped[int | None] = mapped_column(Integer, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        onupdate=func.now(),
    )
