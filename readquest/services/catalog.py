# readquest/services/catalog.py
"""
Reward catalog: typed view over `reward_types` rows.

The stored JSON metadata is parsed into exactly one variant per category, so a
"card" can never carry an item flag and a chest key is always an item.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from readquest.database.models import Rarity, RewardCategory, RewardType
from readquest.services.errors import NotFoundError, ValidationError

DEFAULT_FRAGMENTS_PER_PREMIUM_MONTH = 12


@dataclass(frozen=True, slots=True)
class CurrencyReward:
    amount: int


@dataclass(frozen=True, slots=True)
class ExperienceReward:
    amount: int


@dataclass(frozen=True, slots=True)
class FragmentReward:
    fragments_per_premium_month: int = DEFAULT_FRAGMENTS_PER_PREMIUM_MONTH


@dataclass(frozen=True, slots=True)
class CardReward:
    collection: str
    card_number: int | None = None


@dataclass(frozen=True, slots=True)
class ItemReward:
    consumable: bool = True
    unlocks_chest: bool = False


RewardPayload = Union[CurrencyReward, ExperienceReward, FragmentReward, CardReward, ItemReward]


@dataclass(frozen=True, slots=True)
class RewardDescriptor:
    id: int
    name: str
    category: RewardCategory
    rarity: Rarity
    payload: RewardPayload

    @property
    def is_chest_key(self) -> bool:
        return isinstance(self.payload, ItemReward) and self.payload.unlocks_chest

    @property
    def goes_to_inventory(self) -> bool:
        return self.category in (RewardCategory.FRAGMENT, RewardCategory.CARD, RewardCategory.ITEM)


def _positive_int(meta: dict[str, Any], key: str, *, default: int | None = None) -> int:
    raw = meta.get(key, default)
    if raw is None:
        raise ValidationError(f"metadata.{key}", "is required")
    if isinstance(raw, bool):
        raise ValidationError(f"metadata.{key}", "must be an integer")
    try:
        value = int(raw)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"metadata.{key}", "must be an integer") from e
    if value <= 0:
        raise ValidationError(f"metadata.{key}", "must be > 0")
    return value


def parse_payload(category: RewardCategory, meta: dict[str, Any] | None) -> RewardPayload:
    meta = dict(meta or {})

    if category == RewardCategory.CURRENCY:
        return CurrencyReward(amount=_positive_int(meta, "amount"))

    if category == RewardCategory.EXPERIENCE:
        return ExperienceReward(amount=_positive_int(meta, "amount"))

    if category == RewardCategory.FRAGMENT:
        return FragmentReward(
            fragments_per_premium_month=_positive_int(
                meta, "fragments_per_premium_month", default=DEFAULT_FRAGMENTS_PER_PREMIUM_MONTH
            )
        )

    if category == RewardCategory.CARD:
        collection = str(meta.get("collection") or "").strip()
        if not collection:
            raise ValidationError("metadata.collection", "is required for cards")
        number = meta.get("card_number")
        return CardReward(
            collection=collection,
            card_number=_positive_int(meta, "card_number") if number is not None else None,
        )

    if category == RewardCategory.ITEM:
        unlocks_chest = bool(meta.get("unlocks_chest", False))
        consumable = bool(meta.get("consumable", True))
        if unlocks_chest and not consumable:
            raise ValidationError("metadata.consumable", "chest keys must be consumable")
        return ItemReward(consumable=consumable, unlocks_chest=unlocks_chest)

    raise ValidationError("category", f"unknown category {category!r}")


def descriptor_from_row(row: RewardType) -> RewardDescriptor:
    return RewardDescriptor(
        id=row.id,
        name=row.name,
        category=RewardCategory(row.category),
        rarity=Rarity(row.rarity),
        payload=parse_payload(RewardCategory(row.category), row.metadata_),
    )


class CatalogService:
    @staticmethod
    async def get(session: AsyncSession, reward_type_id: int) -> RewardDescriptor:
        row = await session.get(RewardType, reward_type_id)
        if row is None:
            raise NotFoundError("Reward", reward_type_id)
        return descriptor_from_row(row)

    @staticmethod
    async def get_many(session: AsyncSession, ids: set[int]) -> dict[int, RewardDescriptor]:
        if not ids:
            return {}
        res = await session.execute(select(RewardType).where(RewardType.id.in_(ids)))
        return {row.id: descriptor_from_row(row) for row in res.scalars().all()}
