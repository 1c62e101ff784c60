# readquest/services/bonuses.py
"""
Skill Bonus Aggregator.

`SkillBonusService.active_bonuses` returns every bonus from the user's unlocked
skill nodes, unfiltered. The chest and wheel resolvers share that list and pick
what applies to their own context with the pure helpers below (weekday, genres,
target reward).
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Iterable, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import Skill, SkillBonusType, SkillPath, UserSkill
from readquest.database.tx import transactional
from readquest.services.errors import (
    AlreadyClaimedError,
    InsufficientResourceError,
    NotFoundError,
    ValidationError,
)
from readquest.services.ledger import LedgerService
from readquest.services.levels import level_for

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SkillBonus:
    skill_id: int
    skill_name: str
    bonus_type: SkillBonusType
    percentage: Fraction
    days: frozenset[int] = field(default_factory=frozenset)  # Monday = 0
    genres: frozenset[str] = field(default_factory=frozenset)
    reward_type_id: int | None = None

    def describe(self) -> str:
        pct = f"+{float(self.percentage):g}%"
        if self.bonus_type == SkillBonusType.CURRENCY_BY_DAY:
            return f"{pct} currency on days {sorted(self.days)} ({self.skill_name})"
        if self.bonus_type == SkillBonusType.CURRENCY_BY_GENRE:
            return f"{pct} currency on {', '.join(sorted(self.genres))} ({self.skill_name})"
        if self.bonus_type == SkillBonusType.EXPERIENCE_BOOST:
            return f"{pct} experience ({self.skill_name})"
        return f"{pct} drop chance for reward #{self.reward_type_id} ({self.skill_name})"


def normalize_genres(genres: Iterable[str] | None) -> frozenset[str]:
    return frozenset(g.strip().lower() for g in (genres or ()) if g and g.strip())


def parse_bonus_config(bonus_type: SkillBonusType, config: dict[str, Any] | None) -> dict[str, Any]:
    """Validate a skill's bonus_config for its type. Returns SkillBonus keyword fields."""
    config = dict(config or {})

    raw_pct = config.get("percentage")
    if raw_pct is None or isinstance(raw_pct, bool):
        raise ValidationError("bonus_config.percentage", "is required")
    try:
        pct = Fraction(str(raw_pct))
    except (TypeError, ValueError) as e:
        raise ValidationError("bonus_config.percentage", "must be a number") from e
    if pct <= 0:
        raise ValidationError("bonus_config.percentage", "must be > 0")

    out: dict[str, Any] = {"percentage": pct}

    if bonus_type == SkillBonusType.CURRENCY_BY_DAY:
        days = config.get("days") or []
        if not days or any(isinstance(d, bool) or not isinstance(d, int) or not 0 <= d <= 6 for d in days):
            raise ValidationError("bonus_config.days", "must be a non-empty list of weekdays 0..6")
        out["days"] = frozenset(days)
    elif bonus_type == SkillBonusType.CURRENCY_BY_GENRE:
        genres = config.get("genres")
        if genres is None and config.get("genre"):
            genres = [config["genre"]]
        genres = normalize_genres(genres)
        if not genres:
            raise ValidationError("bonus_config.genres", "must name at least one genre")
        out["genres"] = genres
    elif bonus_type == SkillBonusType.DROP_CHANCE_BOOST:
        rid = config.get("reward_type_id")
        if isinstance(rid, bool) or not isinstance(rid, int):
            raise ValidationError("bonus_config.reward_type_id", "is required")
        out["reward_type_id"] = rid
    elif bonus_type != SkillBonusType.EXPERIENCE_BOOST:
        raise ValidationError("bonus_type", f"unknown bonus type {bonus_type!r}")

    return out


def bonus_from_skill(skill: Skill) -> SkillBonus:
    bonus_type = SkillBonusType(skill.bonus_type)
    return SkillBonus(
        skill_id=skill.id,
        skill_name=skill.name,
        bonus_type=bonus_type,
        **parse_bonus_config(bonus_type, skill.bonus_config),
    )


# --- context filters (pure) ---


def currency_bonuses(
    bonuses: Sequence[SkillBonus],
    *,
    weekday: int,
    genres: Iterable[str] | None = None,
) -> list[SkillBonus]:
    wanted = normalize_genres(genres)
    applied: list[SkillBonus] = []
    for b in bonuses:
        if b.bonus_type == SkillBonusType.CURRENCY_BY_DAY and weekday in b.days:
            applied.append(b)
        elif b.bonus_type == SkillBonusType.CURRENCY_BY_GENRE and b.genres & wanted:
            applied.append(b)
    return applied


def experience_bonuses(bonuses: Sequence[SkillBonus]) -> list[SkillBonus]:
    return [b for b in bonuses if b.bonus_type == SkillBonusType.EXPERIENCE_BOOST]


def drop_chance_bonuses(bonuses: Sequence[SkillBonus], reward_type_id: int) -> list[SkillBonus]:
    return [
        b
        for b in bonuses
        if b.bonus_type == SkillBonusType.DROP_CHANCE_BOOST and b.reward_type_id == reward_type_id
    ]


def total_percentage(bonuses: Iterable[SkillBonus]) -> Fraction:
    return sum((b.percentage for b in bonuses), Fraction(0))


def multiplier(bonuses: Iterable[SkillBonus]) -> Fraction:
    """1 + sum(percentage) / 100, exact."""
    return 1 + total_percentage(bonuses) / 100


def currency_multiplier(bonuses: Sequence[SkillBonus], weekday: int, genres: Iterable[str] | None = None) -> Fraction:
    return multiplier(currency_bonuses(bonuses, weekday=weekday, genres=genres))


def experience_multiplier(bonuses: Sequence[SkillBonus]) -> Fraction:
    return multiplier(experience_bonuses(bonuses))


def drop_chance_bonus(bonuses: Sequence[SkillBonus], reward_type_id: int) -> Fraction:
    """Extra percentage points added to one reward's drop chance."""
    return total_percentage(drop_chance_bonuses(bonuses, reward_type_id))


class SkillBonusService:
    @staticmethod
    async def active_bonuses(session: AsyncSession, user_id: int) -> list[SkillBonus]:
        res = await session.execute(
            select(Skill)
            .join(UserSkill, UserSkill.skill_id == Skill.id)
            .join(SkillPath, SkillPath.id == Skill.path_id)
            .where(
                UserSkill.user_id == user_id,
                Skill.is_active.is_(True),
                SkillPath.is_active.is_(True),
            )
            .order_by(Skill.id)
        )

        bonuses: list[SkillBonus] = []
        for skill in res.scalars().all():
            try:
                bonuses.append(bonus_from_skill(skill))
            except ValidationError:
                # saved before validation existed; never fail a resolution over it
                log.warning("Skipping skill id=%s with invalid bonus_config", skill.id)
        return bonuses

    @staticmethod
    async def available_points(session: AsyncSession, user_id: int) -> int:
        experience = (await LedgerService.get_stats(session, user_id)).experience
        spent = await session.scalar(
            select(func.coalesce(func.sum(Skill.skill_point_cost), 0))
            .join(UserSkill, UserSkill.skill_id == Skill.id)
            .where(UserSkill.user_id == user_id)
        )
        return max(0, level_for(experience) - 1 - int(spent or 0))

    @staticmethod
    async def unlock(session: AsyncSession, *, user_id: int, skill_id: int) -> SkillBonus:
        """
        Unlock a skill node. Skill points: one per level above 1, minus costs already spent.
        """
        skill = await session.get(Skill, skill_id)
        if skill is None or not skill.is_active:
            raise NotFoundError("Skill", skill_id)

        available = await SkillBonusService.available_points(session, user_id)
        if available < skill.skill_point_cost:
            raise InsufficientResourceError("skill points", skill.skill_point_cost, available)

        try:
            async with transactional(session):
                session.add(UserSkill(user_id=user_id, skill_id=skill_id))
                await session.flush()
        except IntegrityError:
            raise AlreadyClaimedError(
                "Skill already unlocked",
                {"user_id": user_id, "skill_id": skill_id},
                user_message="✨ You already unlocked this skill.",
            ) from None

        log.info("Skill unlocked user_id=%s skill_id=%s cost=%s", user_id, skill_id, skill.skill_point_cost)
        return bonus_from_skill(skill)
