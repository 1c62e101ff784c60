# readquest/services/wheel.py
"""
Wheel Resolver: one weighted, mutually exclusive draw per spin.

Flow: free-spin guard -> config (premium gate) -> streak transition ->
streak bonus -> draw -> skill bonuses -> persist (one transaction).
A minted gift card is returned, not sent: callers deliver it once the
surrounding transaction has committed (GiftCardService.deliver).
"""
from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import (
    GiftCard,
    LedgerReason,
    SegmentKind,
    SpinHistory,
    SpinKind,
    StreakBonus,
    StreakBonusType,
    WheelConfig,
)
from readquest.database.tx import transactional
from readquest.services.bonuses import (
    SkillBonus,
    SkillBonusService,
    currency_bonuses,
    experience_bonuses,
    multiplier,
)
from readquest.services.challenges import ChallengeProgressService, ProgressEvent
from readquest.services.errors import AlreadyClaimedError, ForbiddenError, ValidationError
from readquest.services.gift_cards import GiftCardService
from readquest.services.inventory import InventoryService
from readquest.services.ledger import CreditResult, LedgerService
from readquest.services.streak import StreakService
from readquest.services.subscription import SubscriptionService
from readquest.utils.dates import utc_today

log = logging.getLogger(__name__)

# currency segments at or above this value count as "notable" for probability boosts
NOTABLE_CURRENCY_THRESHOLD = 500


@dataclass(frozen=True, slots=True)
class WheelSegment:
    kind: SegmentKind
    weight: float
    value: int = 0
    reward_type_id: int | None = None
    quantity: int = 1
    label: str = ""

    @property
    def is_notable(self) -> bool:
        if self.kind in (SegmentKind.ITEM, SegmentKind.GIFT_CARD):
            return True
        return self.kind == SegmentKind.CURRENCY and self.value >= NOTABLE_CURRENCY_THRESHOLD

    @classmethod
    def from_dict(cls, raw: dict[str, Any], *, index: int = 0) -> "WheelSegment":
        field_prefix = f"segments[{index}]"
        try:
            kind = SegmentKind(str(raw.get("kind", "")).lower())
        except ValueError:
            raise ValidationError(f"{field_prefix}.kind", f"unknown kind {raw.get('kind')!r}") from None

        try:
            weight = float(raw.get("weight", 0))
        except (TypeError, ValueError):
            raise ValidationError(f"{field_prefix}.weight", "must be a number") from None
        if weight <= 0:
            raise ValidationError(f"{field_prefix}.weight", "must be > 0")

        value = int(raw.get("value") or 0)
        quantity = int(raw.get("quantity") or 1)
        reward_type_id = raw.get("reward_type_id")

        if kind in (SegmentKind.CURRENCY, SegmentKind.EXPERIENCE) and value <= 0:
            raise ValidationError(f"{field_prefix}.value", "must be > 0")
        if kind == SegmentKind.ITEM:
            if reward_type_id is None:
                raise ValidationError(f"{field_prefix}.reward_type_id", "is required for items")
            if quantity <= 0:
                raise ValidationError(f"{field_prefix}.quantity", "must be > 0")

        return cls(
            kind=kind,
            weight=weight,
            value=value,
            reward_type_id=int(reward_type_id) if reward_type_id is not None else None,
            quantity=quantity,
            label=str(raw.get("label") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"kind": self.kind.value, "weight": self.weight, "label": self.label}
        if self.kind in (SegmentKind.CURRENCY, SegmentKind.EXPERIENCE):
            out["value"] = self.value
        if self.kind == SegmentKind.ITEM:
            out["reward_type_id"] = self.reward_type_id
            out["quantity"] = self.quantity
        return out


def default_segments(
    key_reward_type_id: int | None = None,
    fragment_reward_type_id: int | None = None,
) -> list[WheelSegment]:
    """Fallback wheel when no configuration is active. Item slots need catalog ids."""
    segments = [
        WheelSegment(SegmentKind.CURRENCY, 50, value=200, label="200 Orydors"),
        WheelSegment(SegmentKind.CURRENCY, 5, value=1000, label="1000 Orydors"),
    ]
    if key_reward_type_id is not None:
        segments.append(WheelSegment(SegmentKind.ITEM, 1, reward_type_id=key_reward_type_id, label="Chest key"))
    if fragment_reward_type_id is not None:
        segments.append(WheelSegment(SegmentKind.ITEM, 1, reward_type_id=fragment_reward_type_id, label="Fragment"))
    segments.append(WheelSegment(SegmentKind.EXPERIENCE, 43, value=40, label="40 XP"))
    return segments


def parse_segments(raw: Sequence[dict[str, Any]] | None) -> list[WheelSegment]:
    return [WheelSegment.from_dict(s, index=i) for i, s in enumerate(raw or [])]


def apply_probability_boost(segments: Sequence[WheelSegment], factor: float) -> list[float]:
    """Effective weights: notable segments multiplied by `factor`."""
    return [s.weight * factor if s.is_notable else s.weight for s in segments]


def draw_segment(weights: Sequence[float], rng: random.Random) -> tuple[int, float]:
    """Uniform roll in [0, total), walked over the cumulative weights. Returns (index, roll)."""
    total = sum(weights)
    if total <= 0:
        raise ValueError("wheel has no positive weight")

    roll = rng.random() * total
    cumulative = 0.0
    for i, w in enumerate(weights):
        cumulative += w
        if roll < cumulative:
            return i, roll
    # float rounding on the last edge
    return len(weights) - 1, roll


def apply_quantity_boost(amount: int, factor: float) -> int:
    return math.ceil(amount * factor)


@dataclass(frozen=True, slots=True)
class SpinResult:
    spin_id: int
    spin_kind: SpinKind
    segment_index: int
    segment: WheelSegment
    reward_value: int
    new_streak: int
    streak_bonus: StreakBonus | None = None
    applied_bonuses: list[SkillBonus] = field(default_factory=list)
    gift_card: GiftCard | None = None
    credit: CreditResult | None = None

    @property
    def did_level_up(self) -> bool:
        return self.credit is not None and self.credit.did_level_up


class WheelService:
    @staticmethod
    async def active_config(session: AsyncSession, today: date) -> WheelConfig | None:
        return await session.scalar(
            select(WheelConfig)
            .where(
                WheelConfig.is_active.is_(True),
                WheelConfig.start_date <= today,
                WheelConfig.end_date >= today,
            )
            .order_by(WheelConfig.created_at.desc(), WheelConfig.id.desc())
            .limit(1)
        )

    @staticmethod
    async def streak_bonus_for(session: AsyncSession, streak: int) -> StreakBonus | None:
        return await session.scalar(
            select(StreakBonus)
            .where(StreakBonus.is_active.is_(True), StreakBonus.streak_level <= streak)
            .order_by(StreakBonus.streak_level.desc())
            .limit(1)
        )

    @staticmethod
    async def spin(
        session: AsyncSession,
        user_id: int,
        spin_kind: SpinKind = SpinKind.FREE,
        *,
        today: date | None = None,
        rng: random.Random | None = None,
        gift_card_value_cents: int = 1000,
        gift_card_validity_days: int = 365,
        fallback_segments: Sequence[WheelSegment] | None = None,
    ) -> SpinResult:
        today = today or utc_today()
        rng = rng or random.Random()

        async with transactional(session):
            # 1) free-spin guard: partial unique index on (user, day) for free spins
            hist = SpinHistory(user_id=user_id, day_utc=today, spin_kind=spin_kind)
            session.add(hist)
            try:
                await session.flush()
            except IntegrityError:
                raise AlreadyClaimedError(
                    "Free spin already used today",
                    {"user_id": user_id, "day": today.isoformat()},
                    user_message="🎡 You already used your free spin today. Come back tomorrow!",
                ) from None

            # 2) configuration + premium gate
            config = await WheelService.active_config(session, today)
            if config is not None and config.premium_only:
                if not await SubscriptionService.is_premium(session, user_id):
                    raise ForbiddenError(
                        "Wheel configuration is premium-only",
                        {"config_id": config.id, "user_id": user_id},
                    )
            segments = parse_segments(config.segments) if config is not None and config.segments else []
            if not segments:
                segments = list(fallback_segments or default_segments())

            # 3) streak
            streak = await StreakService.participate(session, user_id, today)

            # 4) streak bonus
            bonus = await WheelService.streak_bonus_for(session, streak.current_streak)
            factor = float(bonus.bonus_value) if bonus is not None else 1.0
            if bonus is not None and bonus.bonus_type == StreakBonusType.PROBABILITY_BOOST:
                weights = apply_probability_boost(segments, factor)
            else:
                weights = [s.weight for s in segments]

            # 5) draw
            index, roll = draw_segment(weights, rng)
            segment = segments[index]

            value = segment.quantity if segment.kind == SegmentKind.ITEM else segment.value
            if (
                bonus is not None
                and bonus.bonus_type == StreakBonusType.QUANTITY_BOOST
                and segment.kind != SegmentKind.GIFT_CARD
            ):
                value = apply_quantity_boost(value, factor)

            # 6) reward
            applied: list[SkillBonus] = []
            credit: CreditResult | None = None
            card: GiftCard | None = None

            if segment.kind in (SegmentKind.CURRENCY, SegmentKind.EXPERIENCE):
                skill_bonuses = await SkillBonusService.active_bonuses(session, user_id)
                if segment.kind == SegmentKind.CURRENCY:
                    applied = currency_bonuses(skill_bonuses, weekday=today.weekday())
                else:
                    applied = experience_bonuses(skill_bonuses)
                value = math.floor(value * multiplier(applied)) if applied else value

                credit = await LedgerService.credit(
                    session,
                    user_id=user_id,
                    reason=LedgerReason.WHEEL,
                    currency=value if segment.kind == SegmentKind.CURRENCY else 0,
                    experience=value if segment.kind == SegmentKind.EXPERIENCE else 0,
                    ref_type="spin",
                    ref_id=hist.id,
                    description=f"Wheel: {segment.label or segment.kind.value}",
                )

            elif segment.kind == SegmentKind.ITEM and segment.reward_type_id is not None:
                await InventoryService.add(
                    session,
                    user_id=user_id,
                    reward_type_id=segment.reward_type_id,
                    quantity=value,
                )
                await ChallengeProgressService.on_event(
                    session,
                    ProgressEvent.item_collected(user_id, segment.reward_type_id, value),
                )

            elif segment.kind == SegmentKind.GIFT_CARD:
                card = await GiftCardService.mint(
                    session,
                    user_id=user_id,
                    amount_cents=gift_card_value_cents,
                    validity_days=gift_card_validity_days,
                    spin_id=hist.id,
                )
                value = gift_card_value_cents

            hist.config_id = config.id if config is not None else None
            hist.segment_index = index
            hist.reward_kind = segment.kind
            hist.reward_value = value
            hist.reward_type_id = segment.reward_type_id
            hist.streak_after = streak.current_streak
            hist.bonus_applied = bonus.bonus_type.value if bonus is not None else None
            hist.roll = f"{roll:.6f}/{sum(weights):g}"
            await session.flush()

        log.info(
            "Spin user_id=%s kind=%s segment=%s value=%s streak=%s bonus=%s",
            user_id,
            spin_kind.value,
            index,
            value,
            streak.current_streak,
            hist.bonus_applied,
        )

        return SpinResult(
            spin_id=hist.id,
            spin_kind=spin_kind,
            segment_index=index,
            segment=segment,
            reward_value=value,
            new_streak=streak.current_streak,
            streak_bonus=bonus,
            applied_bonuses=applied,
            gift_card=card,
            credit=credit,
        )
