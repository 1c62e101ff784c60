# readquest/database/models/challenge.py
from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from readquest.database.base import Base


class ObjectiveType(str, enum.Enum):
    READ_BOOK = "read_book"
    READ_GENRE = "read_genre"
    READ_ANY_BOOKS = "read_any_books"
    READ_SAGA_BOOK = "read_saga_book"
    READ_CHAPTERS_BOOK = "read_chapters_book"
    READ_CHAPTERS_GENRE = "read_chapters_genre"
    READ_CHAPTERS_SELECTION = "read_chapters_selection"
    COLLECT_ITEM = "collect_item"


class ObjectiveScope(str, enum.Enum):
    INDIVIDUAL = "individual"
    GUILD = "guild"


class Challenge(Base):
    __tablename__ = "challenges"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=False))
    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=False))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_guild_challenge: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # payout
    currency_reward: Mapped[int] = mapped_column(Integer, default=0)
    xp_reward: Mapped[int] = mapped_column(Integer, default=0)
    item_rewards: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)  # [{"reward_type_id", "quantity"}]
    premium_days_reward: Mapped[int] = mapped_column(Integer, default=0)

    objectives: Mapped[list["ChallengeObjective"]] = relationship(
        back_populates="challenge",
        order_by="ChallengeObjective.position",
        lazy="selectin",
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())

    @property
    def scope(self) -> ObjectiveScope:
        return ObjectiveScope.GUILD if self.is_guild_challenge else ObjectiveScope.INDIVIDUAL


class ChallengeObjective(Base):
    __tablename__ = "challenge_objectives"
    __table_args__ = (CheckConstraint("target_count >= 1", name="target_count_positive"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    challenge_id: Mapped[int] = mapped_column(ForeignKey("challenges.id", ondelete="CASCADE"), index=True)

    objective_type: Mapped[ObjectiveType] = mapped_column(Enum(ObjectiveType, native_enum=False), index=True)
    name: Mapped[str] = mapped_column(String(128), default="")
    target_count: Mapped[int] = mapped_column(Integer, default=1)
    position: Mapped[int] = mapped_column(Integer, default=0)

    # optional targets (which one is used depends on objective_type)
    target_book_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    target_book_ids: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)
    target_genre: Mapped[str | None] = mapped_column(String(64), nullable=True)
    target_reward_type_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    challenge: Mapped["Challenge"] = relationship(back_populates="objectives")


class ObjectiveProgress(Base):
    """
    Counter per (objective, subject). Subject is a user id (individual scope)
    or a guild id (guild scope, shared by every member).
    current_count never exceeds the objective's target_count.
    """
    __tablename__ = "objective_progress"
    __table_args__ = (
        UniqueConstraint("objective_id", "scope", "subject_id", name="uq_objective_progress_subject"),
        CheckConstraint("current_count >= 0", name="current_count_nonneg"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    objective_id: Mapped[int] = mapped_column(ForeignKey("challenge_objectives.id", ondelete="CASCADE"), index=True)
    challenge_id: Mapped[int] = mapped_column(ForeignKey("challenges.id", ondelete="CASCADE"), index=True)

    scope: Mapped[ObjectiveScope] = mapped_column(Enum(ObjectiveScope, native_enum=False))
    subject_id: Mapped[int] = mapped_column(Integer, index=True)

    current_count: Mapped[int] = mapped_column(Integer, default=0)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        onupdate=func.now(),
    )


class ChallengeCompletion(Base):
    """Payout marker: one reward claim per (user, challenge)."""
    __tablename__ = "challenge_completions"
    __table_args__ = (UniqueConstraint("user_id", "challenge_id", name="uq_challenge_completion_user"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    challenge_id: Mapped[int] = mapped_column(ForeignKey("challenges.id", ondelete="CASCADE"), index=True)

    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())
