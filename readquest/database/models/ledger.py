# readquest/database/models/ledger.py
from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from readquest.database.base import Base


class LedgerReason(str, enum.Enum):
    CHEST = "chest"
    WHEEL = "wheel"
    STREAK_RECOVERY = "streak_recovery"
    LEVEL_REWARD = "level_reward"
    CHALLENGE_REWARD = "challenge_reward"
    ADMIN_ADJUST = "admin_adjust"


class UserStats(Base):
    """
    One row per user: spendable currency balance + lifetime experience.
    Only ever changed with SQL-side arithmetic (upsert / conditional update).
    """
    __tablename__ = "user_stats"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="balance_nonneg"),
        Index("ix_user_stats_experience", "experience"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, index=True)

    balance: Mapped[int] = mapped_column(Integer, default=0)
    experience: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        onupdate=func.now(),
    )


class LedgerEntry(Base):
    """
    Immutable ledger of currency/XP movements (audit + support tooling).
    """
    __tablename__ = "ledger_entries"
    __table_args__ = (
        Index("ix_ledger_entries_user_created", "user_id", "created_at"),
        CheckConstraint("amount != 0 OR experience != 0", name="entry_nonzero"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)

    reason: Mapped[LedgerReason] = mapped_column(Enum(LedgerReason, native_enum=False), index=True)
    amount: Mapped[int] = mapped_column(Integer, default=0)
    experience: Mapped[int] = mapped_column(Integer, default=0)

    # link back to originating entity (book id, spin id, challenge id, ...)
    ref_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    ref_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())
