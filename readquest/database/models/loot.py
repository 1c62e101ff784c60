# readquest/database/models/loot.py
from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from readquest.database.base import Base


class ChestTier(str, enum.Enum):
    SILVER = "silver"
    GOLD = "gold"


class LootTableEntry(Base):
    """
    One independently-rolled possible drop.
    Scope: global (book_id and genre NULL) | genre | specific book.
    """
    __tablename__ = "loot_tables"
    __table_args__ = (
        Index("ix_loot_tables_tier_book", "chest_tier", "book_id"),
        CheckConstraint("drop_chance > 0 AND drop_chance <= 100", name="drop_chance_range"),
        CheckConstraint("min_quantity >= 1 AND max_quantity >= min_quantity", name="quantity_range"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    book_id: Mapped[int | None] = mapped_column(ForeignKey("books.id", ondelete="CASCADE"), nullable=True)
    genre: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    chest_tier: Mapped[ChestTier] = mapped_column(Enum(ChestTier, native_enum=False))
    reward_type_id: Mapped[int] = mapped_column(ForeignKey("reward_types.id", ondelete="CASCADE"), index=True)

    drop_chance: Mapped[float] = mapped_column(Float)
    min_quantity: Mapped[int] = mapped_column(Integer, default=1)
    max_quantity: Mapped[int] = mapped_column(Integer, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())


class ChestClaim(Base):
    """
    Immutable claim marker: existence blocks re-resolution for (user, book, period).
    claim_index 0 is the regular opening; key-bypass openings take 1, 2, ...
    """
    __tablename__ = "chest_claims"
    __table_args__ = (
        UniqueConstraint("user_id", "book_id", "period_key", "claim_index", name="uq_chest_claim_period"),
        Index("ix_chest_claims_user_period", "user_id", "period_key"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    book_id: Mapped[int] = mapped_column(ForeignKey("books.id", ondelete="CASCADE"), index=True)
    period_key: Mapped[str] = mapped_column(String(16))
    claim_index: Mapped[int] = mapped_column(Integer, default=0)

    chest_tier: Mapped[ChestTier] = mapped_column(Enum(ChestTier, native_enum=False))
    band: Mapped[int] = mapped_column(Integer)
    currency: Mapped[int] = mapped_column(Integer, default=0)
    rewards: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)

    # reward_type_id of the consumed key, NULL for regular openings
    key_reward_type_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())
