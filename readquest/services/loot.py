# readquest/services/loot.py
"""
Loot Resolver: pure chest roll.

Given a book's reward value and genres, the chest tier, the loot-table candidates
and the user's skill bonuses, decide the currency amount and which entries fire.
No I/O here; ChestService persists the outcome.
"""
from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from datetime import date
from fractions import Fraction
from typing import Iterable, Sequence

from readquest.database.models import ChestTier, LootTableEntry
from readquest.services.bonuses import (
    SkillBonus,
    currency_bonuses,
    drop_chance_bonuses,
    experience_bonuses,
    multiplier,
    normalize_genres,
    total_percentage,
)

# percentage bands applied to the book's reward value
CHEST_BANDS: dict[ChestTier, tuple[int, int, int]] = {
    ChestTier.SILVER: (95, 100, 105),
    ChestTier.GOLD: (190, 200, 210),
}
# low / mid / high
BAND_WEIGHTS: tuple[int, int, int] = (25, 50, 25)


@dataclass(frozen=True, slots=True)
class LootCandidate:
    entry_id: int
    reward_type_id: int
    drop_chance: float
    min_quantity: int
    max_quantity: int
    scope: str  # "global" | "genre:<g>" | "book:<id>"


@dataclass(frozen=True, slots=True)
class FiredReward:
    reward_type_id: int
    quantity: int
    entry_id: int
    scope: str
    roll: float


@dataclass(frozen=True, slots=True)
class LootResult:
    tier: ChestTier
    band: int
    base_value: int
    currency: int
    experience: int
    fired: list[FiredReward] = field(default_factory=list)
    applied_bonuses: list[SkillBonus] = field(default_factory=list)


def pick_band(tier: ChestTier, rng: random.Random, *, force_max: bool = False) -> int:
    bands = CHEST_BANDS[tier]
    if force_max:
        return max(bands)
    return rng.choices(bands, weights=BAND_WEIGHTS, k=1)[0]


def merge_scopes(
    entries: Iterable[LootTableEntry],
    *,
    book_id: int,
    genres: Iterable[str],
    tier: ChestTier,
) -> list[LootCandidate]:
    """
    Global + genre-matched + book-specific entries, flattened.
    Not deduplicated: the same reward listed in two scopes rolls twice.
    """
    wanted = normalize_genres(genres)
    out: list[LootCandidate] = []
    for e in entries:
        if ChestTier(e.chest_tier) != tier:
            continue
        if e.book_id is not None:
            if e.book_id != book_id:
                continue
            scope = f"book:{e.book_id}"
        elif e.genre is not None:
            g = e.genre.strip().lower()
            if g not in wanted:
                continue
            scope = f"genre:{g}"
        else:
            scope = "global"
        out.append(
            LootCandidate(
                entry_id=e.id,
                reward_type_id=e.reward_type_id,
                drop_chance=float(e.drop_chance),
                min_quantity=int(e.min_quantity),
                max_quantity=int(e.max_quantity),
                scope=scope,
            )
        )
    return out


def roll_candidate(candidate: LootCandidate, extra_chance: float, rng: random.Random) -> FiredReward | None:
    roll = rng.random() * 100  # [0, 100)
    if roll <= candidate.drop_chance + extra_chance:
        return FiredReward(
            reward_type_id=candidate.reward_type_id,
            quantity=rng.randint(candidate.min_quantity, candidate.max_quantity),
            entry_id=candidate.entry_id,
            scope=candidate.scope,
            roll=roll,
        )
    return None


def resolve_loot(
    base_value: int,
    genres: Iterable[str],
    tier: ChestTier,
    candidates: Sequence[LootCandidate],
    bonuses: Sequence[SkillBonus],
    *,
    today: date,
    force_max: bool = False,
    rng: random.Random | None = None,
) -> LootResult:
    rng = rng or random.Random()
    genres = list(genres)

    band = pick_band(tier, rng, force_max=force_max)
    banded = Fraction(max(0, int(base_value)) * band, 100)

    cur_applied = currency_bonuses(bonuses, weekday=today.weekday(), genres=genres)
    xp_applied = experience_bonuses(bonuses)

    currency = math.floor(banded * multiplier(cur_applied))
    experience = math.floor(banded * multiplier(xp_applied))

    fired: list[FiredReward] = []
    drop_applied: list[SkillBonus] = []
    for c in candidates:
        boosts = drop_chance_bonuses(bonuses, c.reward_type_id)
        hit = roll_candidate(c, float(total_percentage(boosts)), rng)
        for b in boosts:
            if b not in drop_applied:
                drop_applied.append(b)
        if hit is not None:
            fired.append(hit)

    return LootResult(
        tier=tier,
        band=band,
        base_value=int(base_value),
        currency=currency,
        experience=experience,
        fired=fired,
        applied_bonuses=[*cur_applied, *xp_applied, *drop_applied],
    )
