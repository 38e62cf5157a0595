"""
Participant module for the combat engine.

A Participant is the engine's own view of a combatant. It carries only the
values the turn-order state machine needs and a tagged reference to the sheet
it was built from, so the engine never depends on the full character or
creature schema.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field

from skirmish.catalog.character_sheet import CharacterSheet
from skirmish.catalog.creature import Creature
from skirmish.core.constants import Condition, Side


class CharacterSource(BaseModel):
    """Reference to a player character sheet, with an inventory snapshot."""

    kind: Literal["character"] = "character"
    sheet_id: str = Field(
        description="Identifier of the character sheet.",
    )
    inventory: dict[str, int] = Field(
        default_factory=dict,
        description="Item id to quantity, copied when combat starts.",
    )


class CreatureSource(BaseModel):
    """Reference to a bestiary entry."""

    kind: Literal["creature"] = "creature"
    creature_id: str = Field(
        description="Identifier of the creature in the bestiary.",
    )
    challenge_rating: str = Field(
        description="Challenge rating of the creature.",
    )


ParticipantSource = Annotated[
    CharacterSource | CreatureSource,
    Field(discriminator="kind"),
]


class Participant(BaseModel):
    """
    A combatant in the turn order.

    Attributes:
        id (str):
            Unique identifier within the combat.
        name (str):
            Display name.
        side (Side):
            Player-controlled or adversary.
        hp (int):
            Current hit points, between 0 and max_hp.
        max_hp (int):
            Maximum hit points.
        armor_class (int):
            Armor class, displayed to the narrator.
        initiative (int):
            Initiative score, set when initiative is rolled.
        dex_modifier (int):
            Dexterity modifier added to the initiative roll.
        conditions (list[str]):
            Open multiset of condition names.
        is_acting (bool):
            Whether it is this participant's turn.
        pending_fate (bool):
            Set when a player-controlled participant drops to 0 hit points and
            the narrator has not yet decided between revive and destroy.
        source (CharacterSource | CreatureSource):
            Where the participant comes from.

    """

    id: str = Field(
        description="Unique identifier within the combat.",
    )
    name: str = Field(
        description="Display name.",
    )
    side: Side = Field(
        description="Player-controlled or adversary.",
    )
    hp: int = Field(
        ge=0,
        description="Current hit points.",
    )
    max_hp: int = Field(
        ge=0,
        description="Maximum hit points.",
    )
    armor_class: int = Field(
        default=10,
        ge=0,
        description="Armor class.",
    )
    initiative: int = Field(
        default=0,
        description="Initiative score.",
    )
    dex_modifier: int = Field(
        default=0,
        description="Dexterity modifier used for initiative.",
    )
    conditions: list[str] = Field(
        default_factory=list,
        description="Condition names currently affecting the participant.",
    )
    is_acting: bool = Field(
        default=False,
        description="Whether it is this participant's turn.",
    )
    pending_fate: bool = Field(
        default=False,
        description="Waiting for the narrator to revive or destroy it.",
    )
    source: ParticipantSource

    def model_post_init(self, _: Any) -> None:
        """Validates fields after model initialization."""
        if not self.id:
            raise ValueError("Participant id must be a non-empty string")
        if self.hp > self.max_hp:
            raise ValueError(
                f"{self.name}: hit points ({self.hp}) exceed the maximum ({self.max_hp})"
            )

    # ============================================================================
    # BUILDERS
    # ============================================================================

    @classmethod
    def from_character(cls, sheet: CharacterSheet) -> "Participant":
        """
        Builds a player-controlled participant from a character sheet.

        Args:
            sheet (CharacterSheet): The character sheet.

        Returns:
            Participant: The new participant.

        """
        return cls(
            id=sheet.id,
            name=sheet.name,
            side=Side.PLAYER,
            hp=sheet.current_hp,
            max_hp=sheet.max_hp,
            armor_class=sheet.armor_class,
            dex_modifier=sheet.dex_modifier,
            source=CharacterSource(
                sheet_id=sheet.id,
                inventory=dict(sheet.inventory),
            ),
        )

    @classmethod
    def from_creature(
        cls,
        creature: Creature,
        instance_id: str | None = None,
        name: str | None = None,
    ) -> "Participant":
        """
        Builds an adversary from a bestiary entry.

        Args:
            creature (Creature): The bestiary entry.
            instance_id (str | None): Unique id of this copy; defaults to the creature id.
            name (str | None): Display name of this copy; defaults to the creature name.

        Returns:
            Participant: The new participant.

        """
        return cls(
            id=instance_id or creature.id,
            name=name or creature.name,
            side=Side.ADVERSARY,
            hp=creature.hit_points,
            max_hp=creature.hit_points,
            armor_class=creature.armor_class,
            dex_modifier=creature.dex_modifier,
            source=CreatureSource(
                creature_id=creature.id,
                challenge_rating=creature.challenge_rating,
            ),
        )

    # ============================================================================
    # CONDITIONS
    # ============================================================================

    def has_condition(self, condition: Condition | str) -> bool:
        name = condition.value if isinstance(condition, Condition) else condition
        return name in self.conditions

    def add_condition(self, condition: Condition | str) -> None:
        """Adds a condition. Engine conditions are never duplicated."""
        name = condition.value if isinstance(condition, Condition) else condition
        if isinstance(condition, Condition) and name in self.conditions:
            return
        self.conditions.append(name)

    def remove_condition(self, condition: Condition | str) -> bool:
        """Removes one occurrence of a condition, returns whether it was present."""
        name = condition.value if isinstance(condition, Condition) else condition
        if name in self.conditions:
            self.conditions.remove(name)
            return True
        return False

    def discard_condition(self, condition: Condition | str) -> None:
        """Removes every occurrence of a condition."""
        name = condition.value if isinstance(condition, Condition) else condition
        self.conditions = [c for c in self.conditions if c != name]

    # ============================================================================
    # STATUS
    # ============================================================================

    @property
    def is_dead(self) -> bool:
        return self.has_condition(Condition.DEAD)

    @property
    def has_fled(self) -> bool:
        return self.has_condition(Condition.FLED)

    @property
    def is_defending(self) -> bool:
        return self.has_condition(Condition.DEFENDING)

    @property
    def is_incapacitated(self) -> bool:
        """True when the participant cannot act nor be targeted by an attack."""
        return self.hp == 0 or self.is_dead or self.has_fled

    @property
    def is_standing(self) -> bool:
        """
        True while the participant still counts for its side.

        A player waiting for its fate still counts: the party is not defeated
        before the narrator decides.
        """
        if self.is_dead or self.has_fled:
            return False
        return self.hp > 0 or self.pending_fate

    @property
    def colored_name(self) -> str:
        return self.side.colorize(self.name)

    def __str__(self) -> str:
        return f"{self.name} ({self.hp}/{self.max_hp} HP)"
