"""
Initiative module for the combat engine.

Turns a roster into a turn sequence and walks that sequence. Both operations
are pure: they return new values and never touch their input.
"""

import random

from skirmish.combat.participant import Participant
from skirmish.combat.snapshot import CombatSnapshot
from skirmish.core.constants import Condition
from skirmish.core.dice import roll_d20
from skirmish.core.logging import get_logger

logger = get_logger(__name__)


class InitiativeScheduler:
    """Rolls initiative and computes who acts next.

    Ties on the initiative score are broken by the higher dexterity modifier,
    then by the order of the roster handed to roll_initiative.
    """

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng

    def roll_initiative(
        self,
        roster: list[Participant],
        rng: random.Random | None = None,
    ) -> list[Participant]:
        """
        Rolls a d20 plus dexterity modifier for every participant and sorts the
        roster by score, highest first.

        Args:
            roster (list[Participant]): The participants, in selection order.
            rng (random.Random | None): Random source for this roll; the
                scheduler's own source is used when omitted.

        Returns:
            list[Participant]: Copies of the participants in turn order, the
            first one marked as acting.

        """
        if rng is None:
            rng = self.rng
        rolled: list[Participant] = []
        for participant in roster:
            copy = participant.model_copy(deep=True)
            copy.initiative = roll_d20(rng) + copy.dex_modifier
            copy.is_acting = False
            rolled.append(copy)
            logger.debug(
                "%s rolls initiative %d (dex %+d)",
                copy.name,
                copy.initiative,
                copy.dex_modifier,
            )
        # sorted() is stable, so equal keys keep roster order.
        ordered = sorted(
            rolled,
            key=lambda p: (-p.initiative, -p.dex_modifier),
        )
        if ordered:
            ordered[0].is_acting = True
        return ordered

    @staticmethod
    def is_eligible(participant: Participant) -> bool:
        """Whether the participant can take a turn."""
        return participant.hp > 0 and not participant.has_fled and not participant.is_dead

    def next_index(self, snapshot: CombatSnapshot) -> int | None:
        """
        Walks forward circularly from the acting index to the next eligible
        participant.

        Args:
            snapshot (CombatSnapshot): The current state.

        Returns:
            int | None: The next acting index, or None when nobody can act.

        """
        count = len(snapshot.participants)
        if count == 0:
            return None
        for step in range(1, count + 1):
            index = (snapshot.acting_index + step) % count
            if self.is_eligible(snapshot.participants[index]):
                return index
        return None

    def advance(self, snapshot: CombatSnapshot) -> CombatSnapshot:
        """
        Passes the turn to the next eligible participant.

        The participant whose turn begins drops its defending condition, so a
        defend lasts exactly one round. The round counter increases when the
        walk lands on an index below the previous one.

        When nobody is eligible the snapshot is returned unchanged: the state
        machine resolves the combat before that can happen.

        Args:
            snapshot (CombatSnapshot): The current state.

        Returns:
            CombatSnapshot: The new state.

        """
        index = self.next_index(snapshot)
        if index is None:
            logger.debug("No participant can act, turn not advanced.")
            return snapshot

        advanced = snapshot.model_copy(deep=True)
        previous = advanced.acting_index
        for participant in advanced.participants:
            participant.is_acting = False
        incoming = advanced.participants[index]
        incoming.is_acting = True
        incoming.discard_condition(Condition.DEFENDING)
        if index < previous:
            advanced.round += 1
        advanced.acting_index = index
        logger.debug(
            "Round %d: %s acts (index %d -> %d)",
            advanced.round,
            incoming.name,
            previous,
            index,
        )
        return advanced
