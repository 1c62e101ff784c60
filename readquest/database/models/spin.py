# readquest/database/models/spin.py
from __future__ import annotations

import enum
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from readquest.database.base import Base


class SpinKind(str, enum.Enum):
    FREE = "free"
    PAID = "paid"


class SegmentKind(str, enum.Enum):
    CURRENCY = "currency"
    EXPERIENCE = "experience"
    ITEM = "item"
    GIFT_CARD = "gift_card"


class StreakBonusType(str, enum.Enum):
    PROBABILITY_BOOST = "probability_boost"
    QUANTITY_BOOST = "quantity_boost"


class WheelConfig(Base):
    """
    Admin-authored segment set, effective between start_date and end_date (inclusive).
    `segments` is a JSON list validated at save time (weights > 0, summing to 100).
    """
    __tablename__ = "wheel_configs"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(128))

    start_date: Mapped[date] = mapped_column(Date, index=True)
    end_date: Mapped[date] = mapped_column(Date, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    premium_only: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    segments: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())


class StreakBonus(Base):
    __tablename__ = "streak_bonuses"
    __table_args__ = (UniqueConstraint("streak_level", name="uq_streak_bonuses_level"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    streak_level: Mapped[int] = mapped_column(Integer, index=True)
    bonus_type: Mapped[StreakBonusType] = mapped_column(Enum(StreakBonusType, native_enum=False))
    bonus_value: Mapped[float] = mapped_column(Float)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class SpinHistory(Base):
    """
    One row per spin. Free spins are capped at one per user per day by a partial
    unique index; paid spins are unlimited.
    """
    __tablename__ = "spin_history"
    # Enum columns persist member names, hence 'FREE'
    __table_args__ = (
        Index(
            "uq_spin_free_user_day",
            "user_id",
            "day_utc",
            unique=True,
            sqlite_where=text("spin_kind = 'FREE'"),
            postgresql_where=text("spin_kind = 'FREE'"),
        ),
        Index("ix_spin_user_day", "user_id", "day_utc"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    day_utc: Mapped[date] = mapped_column(Date, index=True)
    spin_kind: Mapped[SpinKind] = mapped_column(Enum(SpinKind, native_enum=False), default=SpinKind.FREE)

    config_id: Mapped[int | None] = mapped_column(ForeignKey("wheel_configs.id", ondelete="SET NULL"), nullable=True)
    segment_index: Mapped[int | None] = mapped_column(Integer, nullable=True)
    reward_kind: Mapped[SegmentKind | None] = mapped_column(Enum(SegmentKind, native_enum=False), nullable=True)
    reward_value: Mapped[int] = mapped_column(Integer, default=0)  # currency / xp amount or item quantity
    reward_type_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    streak_after: Mapped[int] = mapped_column(Integer, default=0)
    bonus_applied: Mapped[str | None] = mapped_column(String(32), nullable=True)

    # roll text for audit
    roll: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())


class GiftCard(Base):
    __tablename__ = "gift_cards"

    id: Mapped[int] = mapped_column(primary_key=True)
    code: Mapped[str] = mapped_column(String(32), unique=True, index=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    spin_id: Mapped[int | None] = mapped_column(ForeignKey("spin_history.id", ondelete="SET NULL"), nullable=True)

    amount_cents: Mapped[int] = mapped_column(Integer)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=False))
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())
