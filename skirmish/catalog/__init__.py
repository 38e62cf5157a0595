"""
Catalog module for the skirmish combat engine.

This module holds the read-only reference data the engine consumes: creatures
with their challenge rating and loot table, items with rarity and healing, and
the combat-relevant part of player character sheets.
"""

from .character_sheet import CharacterSheet
from .content import ContentRepository
from .creature import Creature, LootEntry, parse_challenge_rating
from .item import Item

__all__ = [
    "CharacterSheet",
    "ContentRepository",
    "Creature",
    "LootEntry",
    "parse_challenge_rating",
    "Item",
]
