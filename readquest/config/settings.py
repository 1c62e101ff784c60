# readquest/config/settings.py
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./readquest.db"
CHEST_PERIODS = ("month", "week", "day")


def _require(env: Mapping[str, str], key: str) -> str:
    v = env.get(key)
    if v is None or not v.strip():
        raise RuntimeError(f"Missing required environment variable: {key}")
    return v.strip()


def _to_int(value: str, key_name: str) -> int:
    try:
        return int(value)
    except ValueError as e:
        raise RuntimeError(f"Invalid integer for {key_name}: {value!r}") from e


def _positive_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = (env.get(key) or "").strip()
    value = _to_int(raw, key) if raw else default
    if value <= 0:
        raise RuntimeError(f"{key} must be > 0 (got {value})")
    return value


def _optional_id(env: Mapping[str, str], key: str) -> Optional[int]:
    raw = (env.get(key) or "").strip()
    return _to_int(raw, key) if raw else None


def _parse_int_list(raw: str | None, key_name: str) -> list[int]:
    """
    Comma/space/newline separated ints; "[1, 2]" style brackets and quotes are ignored.
    """
    cleaned = (raw or "").strip().strip("[](){}").strip()
    parts = (p.strip("'\"") for p in re.split(r"[,\s]+", cleaned))
    return [_to_int(p, key_name) for p in parts if p]


def _timezone(env: Mapping[str, str]) -> str:
    name = (env.get("TIMEZONE") or "UTC").strip() or "UTC"
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise RuntimeError(f"Unknown TIMEZONE: {name!r}") from e
    return name


@dataclass(frozen=True, slots=True)
class Settings:
    # --- required ---
    bot_token: str

    # --- optional ---
    database_url: str = DEFAULT_DATABASE_URL

    # --- security / admin ---
    root_admin_ids: tuple[int, ...] = ()

    # --- time ---
    timezone: str = "UTC"  # "today" for streaks and free spins

    # --- environment ---
    environment: str = "production"  # production | development

    # --- economy ---
    streak_recovery_cost: int = 1650
    gift_card_value_cents: int = 1000
    gift_card_validity_days: int = 365
    chest_period: str = "month"  # month | week | day

    # catalog ids used by the fallback wheel's item slots
    wheel_key_reward_type_id: Optional[int] = None
    wheel_fragment_reward_type_id: Optional[int] = None

    @property
    def is_dev(self) -> bool:
        return self.environment.lower() in {"dev", "development", "local"}

    @classmethod
    def load(cls, env: Mapping[str, str] | None = None) -> "Settings":
        """
        Reads the process env (plus .env if present) unless `env` is given.
        Fails fast on missing or malformed values.
        """
        if env is None:
            load_dotenv()
            env = os.environ

        chest_period = (env.get("CHEST_PERIOD") or "month").strip().lower() or "month"
        if chest_period not in CHEST_PERIODS:
            raise RuntimeError(f"Invalid CHEST_PERIOD: {chest_period!r} (expected one of {CHEST_PERIODS})")

        return cls(
            bot_token=_require(env, "BOT_TOKEN"),
            database_url=(env.get("DATABASE_URL") or DEFAULT_DATABASE_URL).strip(),
            root_admin_ids=tuple(_parse_int_list(env.get("ROOT_ADMIN_IDS"), "ROOT_ADMIN_IDS")),
            timezone=_timezone(env),
            environment=(env.get("ENVIRONMENT") or "production").strip() or "production",
            streak_recovery_cost=_positive_int(env, "STREAK_RECOVERY_COST", 1650),
            gift_card_value_cents=_positive_int(env, "GIFT_CARD_VALUE_CENTS", 1000),
            gift_card_validity_days=_positive_int(env, "GIFT_CARD_VALIDITY_DAYS", 365),
            chest_period=chest_period,
            wheel_key_reward_type_id=_optional_id(env, "WHEEL_KEY_REWARD_TYPE_ID"),
            wheel_fragment_reward_type_id=_optional_id(env, "WHEEL_FRAGMENT_REWARD_TYPE_ID"),
        )
