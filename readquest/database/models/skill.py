# readquest/database/models/skill.py
from __future__ import annotations

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Enum, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from readquest.database.base import Base


class SkillBonusType(str, enum.Enum):
    CURRENCY_BY_DAY = "currency_by_day"
    CURRENCY_BY_GENRE = "currency_by_genre"
    EXPERIENCE_BOOST = "experience_boost"
    DROP_CHANCE_BOOST = "drop_chance_boost"


class SkillPath(Base):
    __tablename__ = "skill_paths"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    position: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    skills: Mapped[list["Skill"]] = relationship(back_populates="path", order_by="Skill.position")


class Skill(Base):
    """
    Skill-tree node. bonus_config shape depends on bonus_type:
      currency_by_day:   {"percentage": 10, "days": [5, 6]}      (Monday = 0)
      currency_by_genre: {"percentage": 15, "genres": ["fantasy"]}
      experience_boost:  {"percentage": 5}
      drop_chance_boost: {"percentage": 3, "reward_type_id": 7}
    """
    __tablename__ = "skills"

    id: Mapped[int] = mapped_column(primary_key=True)
    path_id: Mapped[int] = mapped_column(ForeignKey("skill_paths.id", ondelete="CASCADE"), index=True)

    name: Mapped[str] = mapped_column(String(128))
    position: Mapped[int] = mapped_column(Integer, default=1)
    skill_point_cost: Mapped[int] = mapped_column(Integer, default=1)

    bonus_type: Mapped[SkillBonusType] = mapped_column(Enum(SkillBonusType, native_enum=False))
    bonus_config: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    path: Mapped["SkillPath"] = relationship(back_populates="skills")


class UserSkill(Base):
    __tablename__ = "user_skills"
    __table_args__ = (UniqueConstraint("user_id", "skill_id", name="uq_user_skills_user_skill"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    skill_id: Mapped[int] = mapped_column(ForeignKey("skills.id", ondelete="CASCADE"), index=True)

    unlocked_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), server_default=func.now())
