"""
Encounter building and post-combat rewards.
"""

from skirmish.encounter.allocator import (
    EncounterBudgetAllocator,
    EncounterGroup,
    EncounterOutcome,
    GeneratedEncounter,
)
from skirmish.encounter.budget import EncounterBudget, group_multiplier
from skirmish.encounter.rewards import (
    TREASURE_TIERS,
    CreatureDrop,
    RewardAllocator,
    RewardBundle,
    TreasureTier,
    defeated_creatures,
    treasure_tier,
)

__all__ = [
    "TREASURE_TIERS",
    "CreatureDrop",
    "EncounterBudget",
    "EncounterBudgetAllocator",
    "EncounterGroup",
    "EncounterOutcome",
    "GeneratedEncounter",
    "RewardAllocator",
    "RewardBundle",
    "TreasureTier",
    "defeated_creatures",
    "treasure_tier",
    "group_multiplier",
]
