"""
Turn-based combat: participants, snapshots, initiative and the state machine.
"""

from skirmish.combat.initiative import InitiativeScheduler
from skirmish.combat.participant import (
    CharacterSource,
    CreatureSource,
    Participant,
    ParticipantSource,
)
from skirmish.combat.snapshot import ActionLogEntry, CombatSnapshot
from skirmish.combat.state_machine import ActionResult, CombatStateMachine

__all__ = [
    "ActionLogEntry",
    "ActionResult",
    "CharacterSource",
    "CombatSnapshot",
    "CombatStateMachine",
    "CreatureSource",
    "InitiativeScheduler",
    "Participant",
    "ParticipantSource",
]
