# readquest/services/admin_config.py
"""
Validated saves for admin-authored configuration.

Resolvers trust what is stored, so every check happens here, at save time:
wheel weights summing to 100, loot chances and quantity ranges, skill bonus
configs, reward metadata per category, streak bonus thresholds.
"""
from __future__ import annotations

import logging
import math
from datetime import date
from typing import Any, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import (
    ChestTier,
    LootTableEntry,
    Rarity,
    RewardCategory,
    RewardType,
    Skill,
    SkillBonusType,
    SkillPath,
    StreakBonus,
    StreakBonusType,
    WheelConfig,
)
from readquest.database.tx import transactional
from readquest.services.bonuses import parse_bonus_config
from readquest.services.catalog import parse_payload
from readquest.services.errors import NotFoundError, ValidationError
from readquest.services.wheel import WheelSegment

log = logging.getLogger(__name__)

WEIGHT_TOTAL = 100


def validate_segments(segments: Sequence[dict[str, Any]]) -> list[WheelSegment]:
    if not segments:
        raise ValidationError("segments", "at least one segment is required")
    parsed = [WheelSegment.from_dict(s, index=i) for i, s in enumerate(segments)]
    total = sum(s.weight for s in parsed)
    if not math.isclose(total, WEIGHT_TOTAL, abs_tol=1e-9):
        raise ValidationError("segments", f"weights must sum to {WEIGHT_TOTAL} (got {total:g})")
    return parsed


async def _load(session: AsyncSession, model: type, row_id: int | None, label: str):
    if row_id is None:
        row = model()
        session.add(row)
        return row
    row = await session.get(model, row_id)
    if row is None:
        raise NotFoundError(label, row_id)
    return row


class AdminConfigService:
    @staticmethod
    async def save_wheel_config(
        session: AsyncSession,
        *,
        name: str,
        start_date: date,
        end_date: date,
        segments: Sequence[dict[str, Any]],
        premium_only: bool = False,
        is_active: bool = True,
        config_id: int | None = None,
    ) -> WheelConfig:
        if not name or not name.strip():
            raise ValidationError("name", "is required")
        if end_date < start_date:
            raise ValidationError("end_date", "must not be before start_date")
        parsed = validate_segments(segments)

        async with transactional(session):
            row = await _load(session, WheelConfig, config_id, "Wheel configuration")
            row.name = name.strip()
            row.start_date = start_date
            row.end_date = end_date
            row.premium_only = premium_only
            row.is_active = is_active
            row.segments = [s.to_dict() for s in parsed]
            await session.flush()

        log.info("Wheel config saved id=%s segments=%s", row.id, len(parsed))
        return row

    @staticmethod
    async def save_loot_entry(
        session: AsyncSession,
        *,
        chest_tier: ChestTier,
        reward_type_id: int,
        drop_chance: float,
        min_quantity: int = 1,
        max_quantity: int = 1,
        book_id: int | None = None,
        genre: str | None = None,
        entry_id: int | None = None,
    ) -> LootTableEntry:
        if not 0 < drop_chance <= 100:
            raise ValidationError("drop_chance", "must be in (0, 100]")
        if min_quantity < 1:
            raise ValidationError("min_quantity", "must be >= 1")
        if max_quantity < min_quantity:
            raise ValidationError("max_quantity", "must be >= min_quantity")
        genre = genre.strip().lower() if genre and genre.strip() else None
        if book_id is not None and genre is not None:
            raise ValidationError("scope", "an entry is global, per genre or per book, not both")
        if await session.get(RewardType, reward_type_id) is None:
            raise NotFoundError("Reward", reward_type_id)

        async with transactional(session):
            row = await _load(session, LootTableEntry, entry_id, "Loot entry")
            row.chest_tier = ChestTier(chest_tier)
            row.reward_type_id = reward_type_id
            row.drop_chance = float(drop_chance)
            row.min_quantity = min_quantity
            row.max_quantity = max_quantity
            row.book_id = book_id
            row.genre = genre
            await session.flush()

        log.info("Loot entry saved id=%s tier=%s reward=%s", row.id, row.chest_tier.value, reward_type_id)
        return row

    @staticmethod
    async def save_skill(
        session: AsyncSession,
        *,
        path_id: int,
        name: str,
        bonus_type: SkillBonusType,
        bonus_config: dict[str, Any],
        skill_point_cost: int = 1,
        position: int = 1,
        is_active: bool = True,
        skill_id: int | None = None,
    ) -> Skill:
        if not name or not name.strip():
            raise ValidationError("name", "is required")
        if skill_point_cost < 1:
            raise ValidationError("skill_point_cost", "must be >= 1")
        bonus_type = SkillBonusType(bonus_type)
        parse_bonus_config(bonus_type, bonus_config)
        if await session.get(SkillPath, path_id) is None:
            raise NotFoundError("Skill path", path_id)

        async with transactional(session):
            row = await _load(session, Skill, skill_id, "Skill")
            row.path_id = path_id
            row.name = name.strip()
            row.bonus_type = bonus_type
            row.bonus_config = dict(bonus_config)
            row.skill_point_cost = skill_point_cost
            row.position = position
            row.is_active = is_active
            await session.flush()

        log.info("Skill saved id=%s type=%s", row.id, bonus_type.value)
        return row

    @staticmethod
    async def save_reward_type(
        session: AsyncSession,
        *,
        name: str,
        category: RewardCategory,
        metadata: dict[str, Any] | None = None,
        rarity: Rarity = Rarity.COMMON,
        description: str | None = None,
        is_active: bool = True,
        reward_type_id: int | None = None,
    ) -> RewardType:
        if not name or not name.strip():
            raise ValidationError("name", "is required")
        category = RewardCategory(category)
        parse_payload(category, metadata)

        async with transactional(session):
            row = await _load(session, RewardType, reward_type_id, "Reward")
            row.name = name.strip()
            row.category = category
            row.rarity = Rarity(rarity)
            row.metadata_ = dict(metadata or {})
            row.description = description
            row.is_active = is_active
            await session.flush()

        log.info("Reward type saved id=%s category=%s", row.id, category.value)
        return row

    @staticmethod
    async def save_streak_bonus(
        session: AsyncSession,
        *,
        streak_level: int,
        bonus_type: StreakBonusType,
        bonus_value: float,
        description: str | None = None,
        is_active: bool = True,
        bonus_id: int | None = None,
    ) -> StreakBonus:
        if streak_level < 1:
            raise ValidationError("streak_level", "must be >= 1")
        if bonus_value <= 0:
            raise ValidationError("bonus_value", "must be > 0")

        async with transactional(session):
            row = await _load(session, StreakBonus, bonus_id, "Streak bonus")
            row.streak_level = streak_level
            row.bonus_type = StreakBonusType(bonus_type)
            row.bonus_value = float(bonus_value)
            row.description = description
            row.is_active = is_active
            await session.flush()

        log.info("Streak bonus saved id=%s level=%s type=%s", row.id, streak_level, row.bonus_type.value)
        return row
