"""
Constants and enumerations for the combat engine.

Defines the enumerations for participant sides, combat phases, conditions,
encounter difficulty tiers and item rarity, together with the reference
tables (XP thresholds, challenge rating to XP, group multipliers) used by the
encounter and reward allocators.
"""

from enum import Enum


class NiceEnum(Enum):
    """An enumeration that provides a nicer string representation."""

    def __str__(self) -> str:
        return self.name

    @property
    def display_name(self) -> str:
        return self.name.lower().capitalize()


class Side(NiceEnum):
    """Defines which side of the table a participant fights for."""

    PLAYER = "PLAYER"
    ADVERSARY = "ADVERSARY"

    @property
    def emoji(self) -> str:
        """Returns the emoji associated with this side."""
        return {
            Side.PLAYER: "👤",
            Side.ADVERSARY: "👹",
        }.get(self, "❔")

    @property
    def color(self) -> str:
        """Returns the color string associated with this side."""
        return {
            Side.PLAYER: "bold blue",
            Side.ADVERSARY: "bold red",
        }.get(self, "dim white")

    @property
    def colored_name(self) -> str:
        return self.colorize(self.display_name)

    def colorize(self, message: str) -> str:
        """Applies side color formatting to a message."""
        return f"[{self.color}]{message}[/]"


class CombatPhase(NiceEnum):
    """Lifecycle of a combat encounter."""

    NOT_STARTED = "NOT_STARTED"
    ACTIVE = "ACTIVE"
    VICTORY = "VICTORY"
    DEFEAT = "DEFEAT"

    @property
    def is_resolved(self) -> bool:
        return self in (CombatPhase.VICTORY, CombatPhase.DEFEAT)

    @property
    def color(self) -> str:
        return {
            CombatPhase.NOT_STARTED: "dim white",
            CombatPhase.ACTIVE: "bold yellow",
            CombatPhase.VICTORY: "bold green",
            CombatPhase.DEFEAT: "bold red",
        }.get(self, "dim white")

    @property
    def colored_name(self) -> str:
        return f"[{self.color}]{self.display_name}[/]"


class Condition(NiceEnum):
    """Conditions the engine itself reads or writes.

    Participants may carry any other free-form condition name as well.
    """

    DEFENDING = "defending"
    FLED = "fled"
    DEAD = "dead"
    WEAKENED = "weakened"

    @property
    def emoji(self) -> str:
        return {
            Condition.DEFENDING: "🛡️",
            Condition.FLED: "🏃",
            Condition.DEAD: "💀",
            Condition.WEAKENED: "🩹",
        }.get(self, "❔")


class Difficulty(NiceEnum):
    """The four ordered encounter difficulty tiers."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    DEADLY = "deadly"

    @property
    def rank(self) -> int:
        return list(Difficulty).index(self)


class Rarity(NiceEnum):
    """Item rarity, ordered from the most to the least common."""

    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"

    @property
    def rank(self) -> int:
        return list(Rarity).index(self)

    @property
    def color(self) -> str:
        return {
            Rarity.COMMON: "white",
            Rarity.UNCOMMON: "bold green",
            Rarity.RARE: "bold blue",
            Rarity.EPIC: "bold magenta",
            Rarity.LEGENDARY: "bold yellow",
        }.get(self, "dim white")

    def colorize(self, message: str) -> str:
        return f"[{self.color}]{message}[/]"


class ItemCategory(NiceEnum):
    """Shop and loot categories for items."""

    WEAPONS = "weapons"
    ARMOR = "armor"
    POTIONS = "potions"
    MAGIC = "magic"
    CONSUMABLES = "consumables"
    TOOLS = "tools"

    @property
    def emoji(self) -> str:
        return {
            ItemCategory.WEAPONS: "⚔️",
            ItemCategory.ARMOR: "🛡️",
            ItemCategory.POTIONS: "🧪",
            ItemCategory.MAGIC: "✨",
            ItemCategory.CONSUMABLES: "🍞",
            ItemCategory.TOOLS: "🔧",
        }.get(self, "❔")


# XP thresholds per character, indexed by character level - 1.
XP_THRESHOLDS: dict[Difficulty, list[int]] = {
    Difficulty.EASY: [
        25, 50, 75, 125, 250, 300, 350, 450, 550, 600,
        800, 1000, 1100, 1250, 1400, 1600, 2100, 2400, 2800, 3900,
    ],
    Difficulty.MEDIUM: [
        50, 100, 150, 250, 500, 600, 750, 900, 1100, 1200,
        1600, 2000, 2200, 2500, 2800, 3200, 4200, 4900, 5700, 7800,
    ],
    Difficulty.HARD: [
        75, 150, 225, 375, 750, 900, 1100, 1400, 1600, 1900,
        2400, 3000, 3400, 3800, 4300, 4800, 6300, 7300, 8500, 11700,
    ],
    Difficulty.DEADLY: [
        100, 200, 400, 500, 1100, 1400, 1700, 2100, 2400, 2800,
        3600, 4500, 5100, 5700, 6400, 7200, 9500, 10900, 12700, 17500,
    ],
}

MIN_PARTY_LEVEL = 1
MAX_PARTY_LEVEL = 20

# Challenge rating to XP value.
CHALLENGE_RATING_XP: dict[str, int] = {
    "0": 10, "1/8": 25, "1/4": 50, "1/2": 100,
    "1": 200, "2": 450, "3": 700, "4": 1100, "5": 1800,
    "6": 2300, "7": 2900, "8": 3900, "9": 5000, "10": 5900,
    "11": 7200, "12": 8400, "13": 10000, "14": 11500, "15": 13000,
    "16": 15000, "17": 18000, "18": 20000, "19": 22000, "20": 25000,
    "21": 33000, "22": 41000, "23": 50000, "24": 62000, "25": 75000,
    "26": 90000, "27": 105000, "28": 120000, "29": 135000, "30": 155000,
}

# (minimum monster count, multiplier), ascending by count.
GROUP_MULTIPLIER_STEPS: list[tuple[int, float]] = [
    (1, 1.0),
    (2, 1.5),
    (3, 2.0),
    (7, 2.5),
    (11, 3.0),
    (15, 4.0),
]

D20 = 20
