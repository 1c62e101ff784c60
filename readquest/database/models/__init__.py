from .user import User, Subscription
from .admin import Admin, AdminRole
from .catalog import Book, Rarity, RewardCategory, RewardType
from .inventory import InventoryItem
from .ledger import LedgerEntry, LedgerReason, UserStats
from .loot import ChestClaim, ChestTier, LootTableEntry
from .spin import GiftCard, SegmentKind, SpinHistory, SpinKind, StreakBonus, StreakBonusType, WheelConfig
from .streak import UserStreak
from .skill import Skill, SkillBonusType, SkillPath, UserSkill
from .guild import Guild, GuildMember
from .challenge import (
    Challenge,
    ChallengeCompletion,
    ChallengeObjective,
    ObjectiveProgress,
    ObjectiveScope,
    ObjectiveType,
)
from .level_reward import LevelReward, PendingLevelReward

__all__ = [
    "User",
    "Subscription",
    "Admin",
    "AdminRole",
    "Book",
    "Rarity",
    "RewardCategory",
    "RewardType",
    "InventoryItem",
    "LedgerEntry",
    "LedgerReason",
    "UserStats",
    "ChestClaim",
    "ChestTier",
    "LootTableEntry",
    "GiftCard",
    "SegmentKind",
    "SpinHistory",
    "SpinKind",
    "StreakBonus",
    "StreakBonusType",
    "WheelConfig",
    "UserStreak",
    "Skill",
    "SkillBonusType",
    "SkillPath",
    "UserSkill",
    "Guild",
    "GuildMember",
    "Challenge",
    "ChallengeCompletion",
    "ChallengeObjective",
    "ObjectiveProgress",
    "ObjectiveScope",
    "ObjectiveType",
    "LevelReward",
    "PendingLevelReward",
]
