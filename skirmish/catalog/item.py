"""
Item module for the catalog.

Defines the Item record consumed read-only by the combat engine (item use)
and by the reward allocator (drops and hoards).
"""

from typing import Any

from pydantic import BaseModel, Field

from skirmish.core.constants import ItemCategory, Rarity
from skirmish.core.dice import DiceParser


class Item(BaseModel):
    """
    Represents an item of the shop catalog.

    Only the fields the engine needs are modelled: price and rarity for the
    treasure tables, and an optional healing expression for combat use.
    """

    id: str = Field(
        description="Unique identifier of the item.",
    )
    name: str = Field(
        description="The display name of the item.",
    )
    category: ItemCategory = Field(
        description="The shop category of the item.",
    )
    price: int = Field(
        default=0,
        ge=0,
        description="The price of the item in gold pieces.",
    )
    rarity: Rarity = Field(
        default=Rarity.COMMON,
        description="The rarity of the item.",
    )
    healing: str | None = Field(
        default=None,
        description="Dice expression of the hit points restored when used (e.g. '2d4+2').",
    )
    description: str = Field(
        default="",
        description="A brief description of the item.",
    )

    def model_post_init(self, _: Any) -> None:
        """Validates fields after model initialization."""
        if not self.id or not isinstance(self.id, str):
            raise ValueError("id must be a non-empty string")
        if not self.name:
            raise ValueError("name must be a non-empty string")
        if self.healing is not None and not DiceParser.is_valid(self.healing):
            raise ValueError(f"healing is not a dice expression: {self.healing}")

    @property
    def is_magic(self) -> bool:
        """Magic items are the ones above common rarity or in the magic category."""
        return self.category == ItemCategory.MAGIC or self.rarity != Rarity.COMMON

    @property
    def is_usable_in_combat(self) -> bool:
        return self.healing is not None

    @property
    def colored_name(self) -> str:
        return self.rarity.colorize(self.name)

    def __str__(self) -> str:
        return f"{self.name} ({self.rarity.value})"
