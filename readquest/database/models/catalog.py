# readquest/database/models/catalog.py
from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from readquest.database.base import Base


class RewardCategory(str, enum.Enum):
    CURRENCY = "currency"
    EXPERIENCE = "experience"
    FRAGMENT = "fragment"
    CARD = "card"
    ITEM = "item"


class Rarity(str, enum.Enum):
    COMMON = "common"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class RewardType(Base):
    """
    Admin-authored descriptor of an obtainable thing.

    `metadata_` is stored as JSON but only ever read through
    readquest.services.catalog.descriptor_from_row (typed per category).
    Rows referenced by a claim are never edited in place.
    """
    __tablename__ = "reward_types"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    category: Mapped[RewardCategory] = mapped_column(Enum(RewardCategory, native_enum=False), index=True)
    rarity: Mapped[Rarity] = mapped_column(Enum(Rarity, native_enum=False), default=Rarity.COMMON)

    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())


class Book(Base):
    """
    Catalog view consumed by the engine: reward value + genre tags only.
    The catalog itself (chapters, files, editors) lives elsewhere.
    """
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(256))

    # base reward value ("points") used for chest currency
    points: Mapped[int] = mapped_column(Integer, default=0)
    genres: Mapped[list[str]] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())
