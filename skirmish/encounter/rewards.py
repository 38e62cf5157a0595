"""
Reward module.

Turns the creatures defeated in a combat into experience, gold and items:
XP is the plain sum of the creatures' values, gold and the treasure hoard
depend on the tier implied by the average challenge rating, and every
creature rolls its own loot table.
"""

import math
import random
from collections.abc import Iterable, Mapping

from catchery import log_debug, log_warning
from pydantic import BaseModel, Field

from skirmish.catalog.content import ContentRepository
from skirmish.catalog.creature import Creature
from skirmish.catalog.item import Item
from skirmish.combat.participant import CreatureSource
from skirmish.combat.snapshot import CombatSnapshot
from skirmish.core.config import RewardSettings
from skirmish.core.constants import Rarity


class TreasureTier(BaseModel):
    """One row of the treasure table."""

    name: str
    max_challenge: float | None = Field(
        description="Highest average challenge rating of the tier; None for the last tier.",
    )
    gold_base: int = Field(ge=0)
    item_count: int = Field(ge=0)
    magic_chance: float = Field(ge=0.0, le=1.0)
    max_rarity: Rarity


TREASURE_TIERS: list[TreasureTier] = [
    TreasureTier(
        name="Tier 1",
        max_challenge=4,
        gold_base=50,
        item_count=1,
        magic_chance=0.10,
        max_rarity=Rarity.UNCOMMON,
    ),
    TreasureTier(
        name="Tier 2",
        max_challenge=10,
        gold_base=500,
        item_count=2,
        magic_chance=0.25,
        max_rarity=Rarity.RARE,
    ),
    TreasureTier(
        name="Tier 3",
        max_challenge=16,
        gold_base=5000,
        item_count=3,
        magic_chance=0.50,
        max_rarity=Rarity.EPIC,
    ),
    TreasureTier(
        name="Tier 4",
        max_challenge=None,
        gold_base=20000,
        item_count=4,
        magic_chance=0.75,
        max_rarity=Rarity.LEGENDARY,
    ),
]


def treasure_tier(average_challenge: float) -> TreasureTier:
    """Returns the treasure tier of an encounter from its average challenge rating."""
    for tier in TREASURE_TIERS:
        if tier.max_challenge is None or average_challenge <= tier.max_challenge:
            return tier
    return TREASURE_TIERS[-1]


class CreatureDrop(BaseModel):
    """An item dropped by a specific creature."""

    creature_id: str
    item: Item


class RewardBundle(BaseModel):
    """Everything the party earns at the end of a combat."""

    total_xp: int = Field(default=0, ge=0)
    xp_per_player: int = Field(default=0, ge=0)
    gold: int = Field(default=0, ge=0)
    gold_per_player: int = Field(default=0, ge=0)
    tier: TreasureTier | None = None
    creature_drops: list[CreatureDrop] = Field(default_factory=list)
    hoard_items: list[Item] = Field(default_factory=list)

    @property
    def items(self) -> list[Item]:
        """Dropped and hoard items together."""
        return [drop.item for drop in self.creature_drops] + list(self.hoard_items)

    @property
    def is_empty(self) -> bool:
        return self.total_xp == 0 and self.gold == 0 and not self.items


class RewardAllocator:
    """Computes the rewards of a won combat."""

    def __init__(self, settings: RewardSettings | None = None) -> None:
        self.settings = settings or RewardSettings()

    def allocate(
        self,
        creatures: list[Creature],
        party_size: int,
        items: Mapping[str, Item],
        rng: random.Random | None = None,
    ) -> RewardBundle:
        """
        Allocates XP, gold and items for the defeated creatures.

        Args:
            creatures (list[Creature]): The defeated creatures, one entry per copy.
            party_size (int): Number of characters sharing the rewards.
            items (Mapping[str, Item]): The item catalog, by id.
            rng (random.Random | None): Random source for gold and items.

        Returns:
            RewardBundle: The rewards; empty when nothing was defeated.

        Raises:
            ValueError: If the party is empty.

        """
        if party_size < 1:
            raise ValueError(f"party_size must be at least 1, got {party_size}")
        if not creatures:
            return RewardBundle()
        rng = rng or random.Random()

        total_xp = sum(creature.xp for creature in creatures)
        average_challenge = sum(c.challenge_value for c in creatures) / len(creatures)
        tier = treasure_tier(average_challenge)
        gold = self._roll_gold(tier, rng)

        bundle = RewardBundle(
            total_xp=total_xp,
            xp_per_player=total_xp // party_size,
            gold=gold,
            gold_per_player=gold // party_size,
            tier=tier,
            creature_drops=self._roll_drops(creatures, items, rng),
            hoard_items=self._roll_hoard(tier, items.values(), rng),
        )
        log_debug(
            f"Rewards: {total_xp} XP, {gold} gold, {len(bundle.items)} items ({tier.name})",
            {"average_challenge": average_challenge, "party_size": party_size},
        )
        return bundle

    def _roll_gold(self, tier: TreasureTier, rng: random.Random) -> int:
        low = math.ceil(tier.gold_base * self.settings.gold_variance_min)
        high = math.floor(tier.gold_base * self.settings.gold_variance_max)
        if low >= high:
            return low
        return rng.randint(low, high)

    @staticmethod
    def _roll_drops(
        creatures: list[Creature],
        items: Mapping[str, Item],
        rng: random.Random,
    ) -> list[CreatureDrop]:
        drops: list[CreatureDrop] = []
        for creature in creatures:
            for entry in creature.loot_table:
                if rng.random() >= entry.drop_chance:
                    continue
                item = items.get(entry.item_id)
                if item is None:
                    log_warning(
                        f"{creature.name} drops an unknown item: {entry.item_id}",
                        {"creature_id": creature.id, "item_id": entry.item_id},
                    )
                    continue
                drops.append(CreatureDrop(creature_id=creature.id, item=item))
        return drops

    @staticmethod
    def _roll_hoard(
        tier: TreasureTier,
        catalog: Iterable[Item],
        rng: random.Random,
    ) -> list[Item]:
        allowed = [item for item in catalog if item.rarity.rank <= tier.max_rarity.rank]
        magic = [item for item in allowed if item.is_magic]
        mundane = [item for item in allowed if not item.is_magic]
        hoard: list[Item] = []
        for _ in range(tier.item_count):
            pool = magic if rng.random() < tier.magic_chance else mundane
            if not pool:
                log_debug(
                    "No item available for this hoard draw, skipped.",
                    {"tier": tier.name, "magic": pool is magic},
                )
                continue
            hoard.append(rng.choice(pool))
        return hoard


def defeated_creatures(
    snapshot: CombatSnapshot,
    repository: ContentRepository,
) -> list[Creature]:
    """
    Collects the bestiary entries of the adversaries brought down in a combat.

    Adversaries that fled are not counted.

    Args:
        snapshot (CombatSnapshot): The final state of the combat.
        repository (ContentRepository): Where the creatures are looked up.

    Returns:
        list[Creature]: One entry per defeated adversary.

    """
    defeated: list[Creature] = []
    for participant in snapshot.adversaries:
        if participant.hp > 0 or participant.has_fled:
            continue
        if not isinstance(participant.source, CreatureSource):
            continue
        creature = repository.get_creature(participant.source.creature_id)
        if creature is not None:
            defeated.append(creature)
    return defeated
