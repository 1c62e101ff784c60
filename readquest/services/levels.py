# readquest/services/levels.py
from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass

# XP needed to reach levels 1..20
LEVEL_THRESHOLDS: tuple[int, ...] = (
    0, 100, 250, 450, 700,
    1000, 1350, 1750, 2200, 2700,
    3250, 3850, 4500, 5200, 5950,
    6750, 7600, 8500, 9450, 10450,
)

# past the table: +1 level per this much XP
XP_PER_EXTRA_LEVEL = 1000

MAX_TABLE_LEVEL = len(LEVEL_THRESHOLDS)


@dataclass(frozen=True, slots=True)
class LevelProgress:
    level: int
    current_xp: int  # xp earned inside the current level
    level_span: int  # xp between this level and the next
    percent: int


def level_for(xp: int) -> int:
    """Highest level whose threshold <= xp. Never raises; negative xp counts as 0."""
    xp = max(0, int(xp))
    last = LEVEL_THRESHOLDS[-1]
    if xp >= last:
        return MAX_TABLE_LEVEL + (xp - last) // XP_PER_EXTRA_LEVEL
    return bisect_right(LEVEL_THRESHOLDS, xp)


def xp_for_level(level: int) -> int:
    if level <= 1:
        return 0
    if level <= MAX_TABLE_LEVEL:
        return LEVEL_THRESHOLDS[level - 1]
    return LEVEL_THRESHOLDS[-1] + (level - MAX_TABLE_LEVEL) * XP_PER_EXTRA_LEVEL


def level_progress(xp: int) -> LevelProgress:
    xp = max(0, int(xp))
    level = level_for(xp)
    start = xp_for_level(level)
    span = xp_for_level(level + 1) - start
    current = xp - start
    return LevelProgress(
        level=level,
        current_xp=current,
        level_span=span,
        percent=round(current * 100 / span),
    )


def levels_gained(xp_before: int, xp_after: int) -> list[int]:
    """Levels newly reached when xp moves from xp_before to xp_after."""
    before = level_for(xp_before)
    after = level_for(xp_after)
    return list(range(before + 1, after + 1))
