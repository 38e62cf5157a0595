"""
Encounter budget module.

Computes how much XP an encounter may be worth for a given party, and the
group multiplier that makes several monsters count for more than their sum.
"""

from pydantic import BaseModel, Field

from skirmish.core.constants import (
    GROUP_MULTIPLIER_STEPS,
    MAX_PARTY_LEVEL,
    MIN_PARTY_LEVEL,
    XP_THRESHOLDS,
    Difficulty,
)


def group_multiplier(count: int) -> float:
    """
    Returns the XP multiplier for a group of monsters.

    Args:
        count (int): How many monsters fight together.

    Returns:
        float: 1.0 for a single monster (or none), up to 4.0 for fifteen or more.

    """
    multiplier = 1.0
    for minimum, value in GROUP_MULTIPLIER_STEPS:
        if count >= minimum:
            multiplier = value
    return multiplier


class EncounterBudget(BaseModel):
    """The XP allowance of an encounter."""

    party_level: int = Field(
        ge=MIN_PARTY_LEVEL,
        le=MAX_PARTY_LEVEL,
        description="Level of the characters in the party.",
    )
    party_size: int = Field(
        ge=1,
        description="Number of characters in the party.",
    )
    difficulty: Difficulty = Field(
        default=Difficulty.MEDIUM,
        description="Desired difficulty tier.",
    )

    @property
    def threshold(self) -> int:
        """The XP threshold of a single character."""
        return XP_THRESHOLDS[self.difficulty][self.party_level - 1]

    @property
    def xp_ceiling(self) -> int:
        """The XP budget of the whole party."""
        return self.threshold * self.party_size

    def __str__(self) -> str:
        return (
            f"{self.difficulty.display_name} encounter for {self.party_size} "
            f"level {self.party_level} characters ({self.xp_ceiling} XP)"
        )
