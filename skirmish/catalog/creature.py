"""
Creature module for the catalog.

Defines the bestiary record the engine reads: combat statistics, challenge
rating (with its XP value) and the creature's own loot table.
"""

from fractions import Fraction
from typing import Any

from pydantic import BaseModel, Field

from skirmish.core.constants import CHALLENGE_RATING_XP
from skirmish.core.utils import get_stat_modifier


def parse_challenge_rating(challenge_rating: str) -> float:
    """
    Converts a challenge rating string into a number.

    Args:
        challenge_rating (str): A rating such as "2", "1/4" or "1/8".

    Returns:
        float: The numeric rating.

    Raises:
        ValueError: If the rating cannot be parsed.

    """
    return float(Fraction(challenge_rating.strip()))


class LootEntry(BaseModel):
    """One line of a creature's loot table."""

    item_id: str = Field(
        description="Identifier of the item that may drop.",
    )
    drop_chance: float = Field(
        ge=0.0,
        le=1.0,
        description="Independent probability that the item drops.",
    )


class Creature(BaseModel):
    """
    Represents a bestiary entry.

    Only the fields the combat engine needs are modelled; the full stat block
    (senses, languages, actions...) stays with the bestiary screens.
    """

    id: str = Field(
        description="Unique identifier of the creature.",
    )
    name: str = Field(
        description="The display name of the creature.",
    )
    armor_class: int = Field(
        ge=0,
        description="The armor class of the creature.",
    )
    hit_points: int = Field(
        ge=1,
        description="The hit points of a fresh creature.",
    )
    dexterity: int = Field(
        default=10,
        ge=1,
        le=30,
        description="The dexterity score, used for initiative.",
    )
    challenge_rating: str = Field(
        description="The challenge rating (e.g. '1/4', '5').",
    )
    loot_table: list[LootEntry] = Field(
        default_factory=list,
        description="Items the creature may drop when defeated.",
    )

    def model_post_init(self, _: Any) -> None:
        """Validates fields after model initialization."""
        if not self.id or not self.name:
            raise ValueError("Creature id and name must be non-empty strings")
        if self.challenge_rating not in CHALLENGE_RATING_XP:
            raise ValueError(f"Unknown challenge rating: {self.challenge_rating}")

    @property
    def xp(self) -> int:
        """The XP value of the creature, from its challenge rating."""
        return CHALLENGE_RATING_XP[self.challenge_rating]

    @property
    def challenge_value(self) -> float:
        return parse_challenge_rating(self.challenge_rating)

    @property
    def dex_modifier(self) -> int:
        return get_stat_modifier(self.dexterity)

    def __str__(self) -> str:
        return f"{self.name} (CR {self.challenge_rating}, {self.xp} XP)"
