"""
Shared fixtures for the combat engine tests.
"""

import pytest

from skirmish.catalog.content import ContentRepository
from skirmish.catalog.creature import Creature, LootEntry
from skirmish.catalog.item import Item
from skirmish.combat.participant import CharacterSource, CreatureSource, Participant
from skirmish.combat.state_machine import CombatStateMachine
from skirmish.core.constants import ItemCategory, Rarity, Side
from skirmish.core.error_handling import NoticeBoard


class ScriptedDice:
    """
    Random source whose dice land on scripted faces.

    Faces are used in order and the last one repeats forever. Faces larger
    than the die are clamped to its highest face.
    """

    def __init__(self, *faces: int) -> None:
        self.faces = list(faces)

    def randint(self, low: int, high: int) -> int:
        face = self.faces.pop(0) if len(self.faces) > 1 else self.faces[0]
        return max(low, min(high, face))


def _player(
    participant_id: str,
    hp: int = 20,
    dex_modifier: int = 0,
    inventory: dict[str, int] | None = None,
) -> Participant:
    return Participant(
        id=participant_id,
        name=participant_id.capitalize(),
        side=Side.PLAYER,
        hp=hp,
        max_hp=20,
        armor_class=14,
        dex_modifier=dex_modifier,
        source=CharacterSource(sheet_id=participant_id, inventory=inventory or {}),
    )


def _adversary(participant_id: str, hp: int = 10, dex_modifier: int = 0) -> Participant:
    return Participant(
        id=participant_id,
        name=participant_id.capitalize(),
        side=Side.ADVERSARY,
        hp=hp,
        max_hp=hp,
        armor_class=12,
        dex_modifier=dex_modifier,
        source=CreatureSource(creature_id=participant_id, challenge_rating="1/4"),
    )


@pytest.fixture
def dice():
    """Factory of scripted random sources."""
    return ScriptedDice


@pytest.fixture
def make_player():
    return _player


@pytest.fixture
def make_adversary():
    return _adversary


@pytest.fixture
def notices() -> NoticeBoard:
    return NoticeBoard()


@pytest.fixture
def potion() -> Item:
    return Item(
        id="potion-healing",
        name="Healing Potion",
        category=ItemCategory.POTIONS,
        price=50,
        rarity=Rarity.UNCOMMON,
        healing="2d4+2",
    )


@pytest.fixture
def rope() -> Item:
    return Item(id="rope", name="Rope", category=ItemCategory.TOOLS, price=5)


@pytest.fixture
def hero() -> Participant:
    return _player("hero", dex_modifier=2, inventory={"potion-healing": 2, "rope": 1})


@pytest.fixture
def goblin() -> Participant:
    return _adversary("goblin", hp=7, dex_modifier=2)


@pytest.fixture
def orc() -> Participant:
    return _adversary("orc", hp=15, dex_modifier=1)


@pytest.fixture
def roster(hero: Participant, goblin: Participant, orc: Participant) -> list[Participant]:
    return [hero, goblin, orc]


@pytest.fixture
def machine(notices: NoticeBoard, potion: Item, rope: Item) -> CombatStateMachine:
    """A machine whose dice always roll their highest face."""
    return CombatStateMachine(
        items={potion.id: potion, rope.id: rope},
        rng=ScriptedDice(20),
        notices=notices,
        clock=lambda: 1000.0,
    )


@pytest.fixture
def goblin_creature() -> Creature:
    return Creature(
        id="goblin",
        name="Goblin",
        armor_class=15,
        hit_points=7,
        dexterity=14,
        challenge_rating="1/4",
        loot_table=[LootEntry(item_id="dagger", drop_chance=1.0)],
    )


@pytest.fixture
def ogre_creature() -> Creature:
    return Creature(
        id="ogre",
        name="Ogre",
        armor_class=11,
        hit_points=59,
        dexterity=8,
        challenge_rating="2",
    )


@pytest.fixture
def dragon_creature() -> Creature:
    return Creature(
        id="dragon",
        name="Adult Red Dragon",
        armor_class=19,
        hit_points=256,
        dexterity=10,
        challenge_rating="17",
    )


@pytest.fixture
def item_catalog() -> dict[str, Item]:
    items = [
        Item(id="dagger", name="Dagger", category=ItemCategory.WEAPONS, price=2),
        Item(id="torch", name="Torch", category=ItemCategory.CONSUMABLES, price=1),
        Item(id="cloak", name="Cloak of Elvenkind", category=ItemCategory.MAGIC, rarity=Rarity.UNCOMMON),
        Item(id="ring", name="Ring of Protection", category=ItemCategory.MAGIC, rarity=Rarity.RARE),
        Item(id="vorpal", name="Vorpal Sword", category=ItemCategory.MAGIC, rarity=Rarity.LEGENDARY),
    ]
    return {item.id: item for item in items}


@pytest.fixture
def repository(goblin_creature, ogre_creature, dragon_creature, item_catalog) -> ContentRepository:
    return ContentRepository.from_records(
        creatures=[goblin_creature, ogre_creature, dragon_creature],
        items=list(item_catalog.values()),
    )
