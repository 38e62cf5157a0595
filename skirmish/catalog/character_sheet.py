"""
Character sheet module for the catalog.

The engine only reads a handful of values from a player's sheet: hit points,
armor class, dexterity and the consumables carried into the fight.
"""

from typing import Any

from pydantic import BaseModel, Field

from skirmish.core.utils import get_stat_modifier


class CharacterSheet(BaseModel):
    """Represents the combat-relevant part of a player character sheet."""

    id: str = Field(
        description="Unique identifier of the character.",
    )
    name: str = Field(
        description="The name of the character.",
    )
    level: int = Field(
        default=1,
        ge=1,
        le=20,
        description="The character level.",
    )
    current_hp: int = Field(
        ge=0,
        description="Current hit points.",
    )
    max_hp: int = Field(
        ge=1,
        description="Maximum hit points.",
    )
    armor_class: int = Field(
        ge=0,
        description="The armor class of the character.",
    )
    dexterity: int = Field(
        default=10,
        ge=1,
        le=30,
        description="The dexterity score, used for initiative.",
    )
    inventory: dict[str, int] = Field(
        default_factory=dict,
        description="Item id to quantity carried.",
    )

    def model_post_init(self, _: Any) -> None:
        """Validates fields after model initialization."""
        if not self.id or not self.name:
            raise ValueError("Character id and name must be non-empty strings")
        if self.current_hp > self.max_hp:
            raise ValueError(
                f"{self.name}: current hit points ({self.current_hp}) exceed "
                f"the maximum ({self.max_hp})"
            )
        for item_id, quantity in self.inventory.items():
            if quantity < 0:
                raise ValueError(f"{self.name}: negative quantity for {item_id}")

    @property
    def dex_modifier(self) -> int:
        return get_stat_modifier(self.dexterity)
