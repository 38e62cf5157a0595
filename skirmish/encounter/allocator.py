"""
Encounter generation module.

Fills an XP budget with a random selection of creatures using a greedy,
bounded loop: creatures are picked one at a time among those that still fit
the budget once the group multiplier is applied, and a pick that pushes the
adjusted total past the overshoot tolerance is undone.
"""

import random
from collections.abc import Iterable

from pydantic import BaseModel, Field

from skirmish.catalog.creature import Creature
from skirmish.combat.participant import Participant
from skirmish.core.config import EncounterSettings
from skirmish.core.constants import NiceEnum
from skirmish.core.error_handling import (
    NOTICE_BOARD,
    ErrorKind,
    ErrorSeverity,
    NoticeBoard,
)
from skirmish.core.logging import get_logger
from skirmish.core.utils import make_names_unique
from skirmish.encounter.budget import EncounterBudget, group_multiplier

logger = get_logger(__name__)


class EncounterOutcome(NiceEnum):
    GENERATED = "GENERATED"
    NO_SUITABLE_CREATURES = "NO_SUITABLE_CREATURES"


class EncounterGroup(BaseModel):
    """Several copies of the same creature."""

    creature: Creature
    count: int = Field(ge=1)

    @property
    def raw_xp(self) -> int:
        return self.creature.xp * self.count


class GeneratedEncounter(BaseModel):
    """The result of an encounter generation."""

    budget: EncounterBudget
    groups: list[EncounterGroup] = Field(default_factory=list)
    raw_xp: int = Field(
        default=0,
        ge=0,
        description="Sum of the XP values of the chosen creatures.",
    )
    adjusted_xp: int = Field(
        default=0,
        ge=0,
        description="Raw XP times the group multiplier.",
    )
    outcome: EncounterOutcome = EncounterOutcome.GENERATED
    explanation: str = ""

    @property
    def creature_count(self) -> int:
        return sum(group.count for group in self.groups)

    @property
    def is_empty(self) -> bool:
        return not self.groups

    @property
    def creatures(self) -> list[Creature]:
        """Every chosen creature, one entry per copy."""
        return [group.creature for group in self.groups for _ in range(group.count)]

    def to_roster(self) -> list[Participant]:
        """
        Builds the adversaries of this encounter.

        Copies of the same creature get distinct ids ("goblin-1", "goblin-2")
        and numbered names ("Goblin (1)", "Goblin (2)").

        Returns:
            list[Participant]: One adversary per chosen creature.

        """
        creatures = self.creatures
        names = make_names_unique([creature.name for creature in creatures])
        counters: dict[str, int] = {}
        roster: list[Participant] = []
        for creature, name in zip(creatures, names):
            counters[creature.id] = counters.get(creature.id, 0) + 1
            roster.append(
                Participant.from_creature(
                    creature,
                    instance_id=f"{creature.id}-{counters[creature.id]}",
                    name=name,
                )
            )
        return roster


class EncounterBudgetAllocator:
    """Generates random encounters that fit a party's XP budget."""

    def __init__(
        self,
        settings: EncounterSettings | None = None,
        notices: NoticeBoard | None = None,
    ) -> None:
        self.settings = settings or EncounterSettings()
        self.notices = notices or NOTICE_BOARD

    def generate(
        self,
        budget: EncounterBudget,
        creatures: Iterable[Creature],
        rng: random.Random | None = None,
    ) -> GeneratedEncounter:
        """
        Picks creatures from the catalog until the budget is filled.

        Args:
            budget (EncounterBudget): The party and difficulty.
            creatures (Iterable[Creature]): The creature catalog.
            rng (random.Random | None): Random source for the picks.

        Returns:
            GeneratedEncounter: The chosen creatures grouped by kind, or an
            empty result explaining that no creature fits.

        """
        rng = rng or random.Random()
        ceiling = budget.xp_ceiling
        limit = ceiling * self.settings.overshoot_tolerance

        affordable = [creature for creature in creatures if creature.xp <= ceiling]
        if not affordable:
            explanation = (
                f"No creature in the catalog is worth {ceiling} XP or less. "
                "Add weaker creatures or raise the party level or difficulty."
            )
            self.notices.handle(
                explanation,
                ErrorKind.UNSATISFIABLE_BUDGET,
                ErrorSeverity.MEDIUM,
                {"budget": ceiling, "difficulty": str(budget.difficulty)},
            )
            return GeneratedEncounter(
                budget=budget,
                outcome=EncounterOutcome.NO_SUITABLE_CREATURES,
                explanation=explanation,
            )

        chosen: list[Creature] = []
        raw_xp = 0
        for attempt in range(self.settings.attempt_cap):
            multiplier = group_multiplier(len(chosen) + 1)
            remaining = ceiling - raw_xp * multiplier
            if remaining <= 0 and chosen:
                break
            candidates = [c for c in affordable if c.xp * multiplier <= remaining]
            if not candidates:
                if not chosen:
                    pick = rng.choice(affordable)
                    chosen.append(pick)
                    raw_xp += pick.xp
                break
            pick = rng.choice(candidates)
            chosen.append(pick)
            raw_xp += pick.xp
            if raw_xp * group_multiplier(len(chosen)) > limit:
                chosen.pop()
                raw_xp -= pick.xp
                logger.debug("Pick %d (%s) overshoots, undone", attempt, pick.name)
                break

        groups: dict[str, EncounterGroup] = {}
        for creature in chosen:
            if creature.id in groups:
                groups[creature.id].count += 1
            else:
                groups[creature.id] = EncounterGroup(creature=creature, count=1)
        adjusted_xp = int(raw_xp * group_multiplier(len(chosen)))
        logger.debug(
            "Generated %d creatures: %d raw XP, %d adjusted XP, budget %d",
            len(chosen),
            raw_xp,
            adjusted_xp,
            ceiling,
        )
        return GeneratedEncounter(
            budget=budget,
            groups=list(groups.values()),
            raw_xp=raw_xp,
            adjusted_xp=adjusted_xp,
            explanation=f"{len(chosen)} creatures worth {adjusted_xp} adjusted XP for a budget of {ceiling} XP.",
        )
